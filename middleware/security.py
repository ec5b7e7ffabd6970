# middleware/security.py
"""
Security Middleware for Request Processing
"""

from flask import request, jsonify, session, g, redirect, url_for, current_app, abort
from functools import wraps
import logging

from config.security import content_security_policy
from core.models import User
from core.security_manager import parse_basic_auth, verify_api_token

logger = logging.getLogger(__name__)


def security_headers(response):
    """Add security headers to all responses"""
    for header, value in current_app.config['SECURITY_HEADERS'].items():
        response.headers[header] = value
    response.headers['Content-Security-Policy'] = content_security_policy(current_app.config['CSP_POLICY'])

    return response


def clean_values(values):
    """Trim string values and convert blank fields to None"""
    cleaned = {}
    for key, value in values.items():
        if isinstance(value, str):
            value = value.strip()
            if value == '':
                value = None
        cleaned[key] = value
    return cleaned


def clean_post():
    """
    before_request hook: cleaned form fields in g.form, cleaned JSON body in
    g.body (a JSON body other than an object is ignored)
    """
    g.form = clean_values(request.form.to_dict()) if request.form else {}
    body = request.get_json(silent=True) if request.is_json else None
    g.body = clean_values(body) if isinstance(body, dict) else {}


def request_values():
    """Submitted values: the JSON body, or else the form fields"""
    return g.body or g.form


def load_logged_in_user():
    """before_request hook: g.user from the session (admin & www)"""
    user_id = session.get('user_id')
    g.user = User.get(user_id) if user_id is not None else None


def require_login(view_exempt=('auth.login', 'auth.reset_request', 'auth.reset', 'static')):
    """
    before_request hook factory: redirect anonymous visitors to the login page
    """
    def check():
        if request.endpoint in view_exempt:
            return None
        if g.get('user') is None:
            if request.path.startswith('/ajax/'):
                return jsonify({'message': 'Authentication required'}), 401
            return redirect(url_for('auth.login', next=request.full_path if request.query_string else request.path))
        return None
    return check


def require_api_auth(exempt=('root.get_root', 'auth.get_auth')):
    """
    before_request hook factory: API requests require Basic auth 'id:token',
    where token is the hash issued by GET /auth
    """
    def check():
        g.user = None
        if request.endpoint in exempt or request.method == 'OPTIONS':
            return None

        credentials = parse_basic_auth(request.headers.get('Authorization'))
        if credentials is None:
            abort(401, description='Authentication required')

        user_id, token = credentials
        user = User.get(user_id)
        if not verify_api_token(user, token, current_app.config['API_TOKEN_TTL']):
            logger.warning(f"API auth failed for id {user_id!r} from {request.remote_addr}")
            abort(401, description='Invalid authentication credentials')

        g.user = user
        return None
    return check


def admin_required(f):
    """Decorator restricting a view to users with the admin role"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None or g.user.get('Role') != 'admin':
            abort(403)
        return f(*args, **kwargs)
    return decorated_function
