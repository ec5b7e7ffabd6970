# api/members.py
"""
Members resource: list/get/insert/update/delete
"""

from flask import Blueprint, request, abort

from api.responses import respond
from core.models import Member
from middleware.security import request_values

members_bp = Blueprint('members', __name__)


@members_bp.route('/members', methods=['GET'])
def list_members():
    """
    GET /members (optionally filtered by any field, e.g. ?firstname=lewis);
    returns 204 when nothing matches
    """
    filters = {field: value for field, value in request.args.items() if not field.startswith('_')}
    members = Member.find(filters)
    if not members:
        return '', 204
    return respond(members, root='members', item='member')


@members_bp.route('/members/<member_id>', methods=['GET'])
def get_member(member_id):
    member = Member.get(member_id)
    if member is None:
        abort(404, description=f'No member {member_id} found')
    return respond(member, root='member')


@members_bp.route('/members', methods=['POST'])
def post_member():
    """Insert member; 201 Created with Location of the new member"""
    member_id = Member.insert(request_values())
    member = Member.get(member_id)
    return respond(member, 201, headers={'Location': f'/members/{member_id}'}, root='member')


@members_bp.route('/members/<member_id>', methods=['PATCH', 'PUT'])
def patch_member(member_id):
    if Member.get(member_id) is None:
        abort(404, description=f'No member {member_id} found')
    Member.update(member_id, request_values())
    return respond(Member.get(member_id), root='member')


@members_bp.route('/members/<member_id>', methods=['DELETE'])
def delete_member(member_id):
    """Delete member; returns the deleted member"""
    member = Member.get(member_id)
    if member is None:
        abort(404, description=f'No member {member_id} found')
    Member.delete(member_id)
    return respond(member, root='member')
