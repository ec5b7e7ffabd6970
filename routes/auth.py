# routes/auth.py
"""
Admin login/logout & password reset
"""

from flask import (
    Blueprint, render_template, request, redirect, url_for, session, flash, g, current_app
)
import logging

from core.models import User
from core.security_manager import (
    generate_reset_token, load_reset_token, reset_token_matches, utc_now, verify_password
)
from services.mail import Mail, MailError

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _safe_next(target):
    """Local redirect target, else the dashboard"""
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return url_for('dashboard.index')


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        email = g.form.get('email') or ''
        password = g.form.get('password') or ''

        user = User.get_by_email(email)
        if user is not None and verify_password(password, user['Password']):
            session.clear()
            session['user_id'] = user['UserId']
            session.permanent = bool(g.form.get('remember'))
            logger.info(f"User {user['UserId']} logged in")
            return redirect(_safe_next(request.args.get('next')))

        logger.warning(f"Login failed for {email!r} from {request.remote_addr}")
        flash('E-mail / password not recognised', 'error')
        return render_template('login.html', email=email), 401

    return render_template('login.html', email='')


@auth_bp.route('/logout')
def logout():
    session.clear()
    flash('You have been logged out', 'info')
    return redirect(url_for('auth.login'))


@auth_bp.route('/password/reset-request', methods=['GET', 'POST'])
def reset_request():
    """
    Request a password reset: a link with a signed token is mailed to the
    user. The same confirmation is shown whether or not the e-mail is known.
    """
    if request.method == 'POST':
        email = g.form.get('email') or ''
        user = User.get_by_email(email)
        if user is not None:
            User.update(user['UserId'], {'PasswordResetRequest': utc_now().isoformat()})
            token = generate_reset_token(current_app.config['SECRET_KEY'], user)
            context = {
                'firstname': user['Firstname'] or '',
                'reset_url': url_for('auth.reset', token=token, _external=True),
                'host': request.host,
            }
            try:
                Mail.send(user['Email'], 'password-reset.email', context)
            except MailError as e:
                logger.error(f"Password reset mail to {email} failed: {e}")
                flash('The password reset e-mail could not be sent; please try again later', 'error')
                return render_template('password-reset-request.html', email=email), 500
        else:
            logger.info(f"Password reset requested for unknown e-mail {email!r}")

        return render_template('password-reset-request-confirm.html', email=email)

    return render_template('password-reset-request.html', email='')


@auth_bp.route('/password/reset/<token>', methods=['GET', 'POST'])
def reset(token):
    config = current_app.config
    payload = load_reset_token(config['SECRET_KEY'], token, config['PASSWORD_RESET_MAX_AGE'])
    user = User.get(payload['id']) if payload else None
    if user is None or not reset_token_matches(payload, user):
        flash('This password reset link is invalid or has expired', 'error')
        return redirect(url_for('auth.reset_request'))

    if request.method == 'POST':
        password = g.form.get('password') or ''
        confirm = g.form.get('confirm') or ''
        if len(password) < MIN_PASSWORD_LENGTH:
            flash(f'Password must be at least {MIN_PASSWORD_LENGTH} characters', 'error')
        elif password != confirm:
            flash('Passwords do not match', 'error')
        else:
            User.set_password(user['UserId'], password)
            logger.info(f"Password reset for user {user['UserId']}")
            flash('Your password has been changed; please log in', 'success')
            return redirect(url_for('auth.login'))
        return render_template('password-reset.html', token=token, email=user['Email']), 400

    return render_template('password-reset.html', token=token, email=user['Email'])
