# routes/members.py
"""
Admin pages for listing, viewing, adding, editing & deleting members
"""

from flask import Blueprint, render_template, request, redirect, url_for, flash, g, abort
import logging

from core.models import Member, ModelError

members_bp = Blueprint('members', __name__, url_prefix='/members')
logger = logging.getLogger(__name__)

LIST_FILTERS = ('firstname', 'lastname', 'email')
FORM_FIELDS = ('Firstname', 'Lastname', 'Email')


def _member_or_404(member_id):
    member = Member.get(member_id)
    if member is None:
        abort(404, description=f'Member {member_id} not found')
    return member


def _form_values():
    values = {field: g.form.get(field) for field in FORM_FIELDS}
    values['Active'] = g.form.get('Active') is not None
    return values


@members_bp.route('')
def list_members():
    """Members list, filtered by any of firstname, lastname, email"""
    filters = {field: request.args[field] for field in LIST_FILTERS if request.args.get(field)}
    members = Member.find(filters)
    return render_template('members-list.html', members=members, filter=filters)


@members_bp.route('/<int:member_id>')
def view(member_id):
    return render_template('members-view.html', member=_member_or_404(member_id))


@members_bp.route('/add', methods=['GET', 'POST'])
def add():
    if request.method == 'POST':
        values = _form_values()
        try:
            member_id = Member.insert(values)
        except ModelError as e:
            flash(e.message, 'error')
            return render_template('members-edit.html', member=values, action='add'), e.status
        flash(f"Member {values['Firstname'] or ''} {values['Lastname'] or ''} added", 'success')
        return redirect(url_for('members.view', member_id=member_id))

    return render_template('members-edit.html', member={'Active': True}, action='add')


@members_bp.route('/<int:member_id>/edit', methods=['GET', 'POST'])
def edit(member_id):
    member = _member_or_404(member_id)
    if request.method == 'POST':
        values = _form_values()
        try:
            Member.update(member_id, values)
        except ModelError as e:
            flash(e.message, 'error')
            return render_template('members-edit.html', member={**member, **values}, action='edit'), e.status
        flash('Member details updated', 'success')
        return redirect(url_for('members.view', member_id=member_id))

    return render_template('members-edit.html', member=member, action='edit')


@members_bp.route('/<int:member_id>/delete', methods=['GET', 'POST'])
def delete(member_id):
    member = _member_or_404(member_id)
    if request.method == 'POST':
        Member.delete(member_id)
        logger.info(f"Member {member_id} deleted by user {g.user['UserId']}")
        flash(f"Member {member['Firstname'] or ''} {member['Lastname'] or ''} deleted", 'success')
        return redirect(url_for('members.list_members'))

    return render_template('members-delete.html', member=member)
