"""
tests/test_admin.py
"""
from __future__ import annotations

from core.models import Member, User
from core.security_manager import generate_reset_token


def _login(client, email, password, **kwargs):
    return client.post('/login', data={'email': email, 'password': password}, **kwargs)


# ───────────────────────── login ──────────────────────────────────────
def test_anonymous_redirected_to_login(admin_client):
    rv = admin_client.get('/members?firstname=lewis')
    assert rv.status_code == 302
    assert rv.headers['Location'].startswith('/login?next=')


def test_login_page(admin_client):
    rv = admin_client.get('/login')
    assert rv.status_code == 200
    assert 'name="password"' in rv.text


def test_bad_login(admin_client):
    rv = _login(admin_client, 'admin@user.com', 'wrong')
    assert rv.status_code == 401
    assert 'E-mail / password not recognised' in rv.text
    with admin_client.session_transaction() as sess:
        assert 'user_id' not in sess


def test_login_redirects_to_next(admin_client):
    rv = admin_client.post('/login?next=/members', data={'email': 'admin@user.com', 'password': 'admin'})
    assert rv.status_code == 302
    assert rv.headers['Location'] == '/members'


def test_login_ignores_offsite_next(admin_client):
    rv = admin_client.post('/login?next=//evil.com/', data={'email': 'admin@user.com', 'password': 'admin'})
    assert rv.headers['Location'] == '/'


def test_dashboard(logged_in_admin):
    rv = logged_in_admin.get('/')
    assert rv.status_code == 200
    assert 'members' in rv.text
    assert 'Log out' in rv.text


def test_logout(logged_in_admin):
    rv = logged_in_admin.get('/logout')
    assert rv.status_code == 302
    assert logged_in_admin.get('/').status_code == 302


# ───────────────────────── members ────────────────────────────────────
def test_members_list_filtered(logged_in_admin):
    rv = logged_in_admin.get('/members?firstname=lewis')
    assert rv.status_code == 200
    assert 'Carroll' in rv.text
    assert 'Austen' not in rv.text


def test_member_add_edit_delete(logged_in_admin, admin_app):
    values = {'Firstname': 'Mary', 'Lastname': 'Shelley', 'Email': 'mary@shelley.com', 'Active': 'on'}
    rv = logged_in_admin.post('/members/add', data=values)
    assert rv.status_code == 302
    view_url = rv.headers['Location']

    rv = logged_in_admin.get(view_url)
    assert rv.status_code == 200
    assert 'mary@shelley.com' in rv.text

    # duplicate e-mail re-renders the form with the error
    rv = logged_in_admin.post('/members/add', data=values)
    assert rv.status_code == 409
    assert 'Duplicate entry' in rv.text
    assert 'value="Mary"' in rv.text

    with admin_app.app_context():
        member_id = Member.find({'Email': 'mary@shelley.com'})[0]['MemberId']

    rv = logged_in_admin.post(f'/members/{member_id}/edit',
                              data={'Firstname': 'Mary', 'Lastname': 'Wollstonecraft', 'Email': 'mary@shelley.com'})
    assert rv.status_code == 302
    with admin_app.app_context():
        member = Member.get(member_id)
    assert member['Lastname'] == 'Wollstonecraft'
    assert member['Active'] is False

    rv = logged_in_admin.get(f'/members/{member_id}/delete')
    assert rv.status_code == 200
    assert 'Delete Mary' in rv.text

    rv = logged_in_admin.post(f'/members/{member_id}/delete', follow_redirects=True)
    assert rv.status_code == 200
    assert 'deleted' in rv.text
    assert logged_in_admin.get(f'/members/{member_id}').status_code == 404


def test_member_edit_requires_email(logged_in_admin, admin_app):
    with admin_app.app_context():
        jane = Member.find({'email': 'jane@austen.com'})[0]
    rv = logged_in_admin.post(f"/members/{jane['MemberId']}/edit", data={'Firstname': 'Jane', 'Email': ''})
    assert rv.status_code == 400
    assert 'cannot be null' in rv.text


def test_member_not_found(logged_in_admin):
    rv = logged_in_admin.get('/members/999999')
    assert rv.status_code == 404
    assert 'Member 999999 not found' in rv.text


# ───────────────────────── dev tools ──────────────────────────────────
def test_sysinfo(logged_in_admin):
    rv = logged_in_admin.get('/dev/sysinfo')
    assert rv.status_code == 200
    assert 'flask' in rv.text


def test_access_log_page(logged_in_admin):
    logged_in_admin.get('/members?firstname=zzlogcheck')
    rv = logged_in_admin.get('/dev/logs/access')
    assert rv.status_code == 200
    assert 'firstname=zzlogcheck' in rv.text


def test_error_log_page(logged_in_admin):
    logged_in_admin.get('/members/999999')
    rv = logged_in_admin.get('/dev/logs/error')
    assert rv.status_code == 200
    assert 'Member 999999 not found' in rv.text


def test_dev_tools_need_admin_role(admin_client):
    _login(admin_client, 'user@user.com', 'user')
    rv = admin_client.get('/dev/sysinfo')
    assert rv.status_code == 403


# ───────────────────────── password reset ─────────────────────────────
def test_reset_request_for_unknown_email(admin_client):
    rv = admin_client.post('/password/reset-request', data={'email': 'nobody@user.com'})
    assert rv.status_code == 200
    assert 'If nobody@user.com is registered' in rv.text


def test_reset_request_records_request(admin_client, admin_app):
    rv = admin_client.post('/password/reset-request', data={'email': 'user@user.com'})
    assert rv.status_code == 200
    with admin_app.app_context():
        assert User.get_by_email('user@user.com')['PasswordResetRequest'] is not None


def test_reset_with_bad_token(admin_client):
    rv = admin_client.get('/password/reset/not-a-token')
    assert rv.status_code == 302
    assert rv.headers['Location'] == '/password/reset-request'


def test_password_reset(admin_client, admin_app):
    with admin_app.app_context():
        user = User.get_by_email('user@user.com')
        token = generate_reset_token(admin_app.config['SECRET_KEY'], user)

    rv = admin_client.get(f'/password/reset/{token}')
    assert rv.status_code == 200
    assert 'user@user.com' in rv.text

    rv = admin_client.post(f'/password/reset/{token}', data={'password': 'new-password', 'confirm': 'different'})
    assert rv.status_code == 400
    assert 'Passwords do not match' in rv.text

    rv = admin_client.post(f'/password/reset/{token}', data={'password': 'new-password', 'confirm': 'new-password'})
    assert rv.status_code == 302
    assert rv.headers['Location'] == '/login'

    assert _login(admin_client, 'user@user.com', 'new-password').status_code == 302

    # token is spent once the password has changed
    rv = admin_client.get(f'/password/reset/{token}')
    assert rv.status_code == 302

    with admin_app.app_context():
        User.set_password(user['UserId'], 'user')
