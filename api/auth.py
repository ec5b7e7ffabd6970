# api/auth.py
"""
API authentication: exchange e-mail/password for an {id, token} pair
"""

from flask import Blueprint, request, abort, current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import logging

from api.responses import respond
from core.models import User
from core.security_manager import (
    api_token_expired, api_token_hash, parse_basic_auth, utc_now, verify_password
)

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

# Rate limiter for the authentication endpoint
limiter = Limiter(key_func=get_remote_address)


@auth_bp.route('/auth', methods=['GET'])
@limiter.limit("10 per minute")
def get_auth():
    """
    GET /auth with basic auth 'email:password' returns {id, token}; subsequent
    requests use basic auth 'id:token'.

    The token remains valid for API_TOKEN_TTL from issue; it is re-issued when
    absent or expired.
    """
    credentials = parse_basic_auth(request.headers.get('Authorization'))
    if credentials is None:
        abort(401, description='Basic auth with e-mail & password required')

    email, password = credentials
    user = User.get_by_email(email)
    if user is None or not verify_password(password, user['Password']):
        logger.warning(f"API login failed for {email!r} from {request.remote_addr}")
        abort(401, description='E-mail / password not recognised')

    if api_token_expired(user['ApiToken'], current_app.config['API_TOKEN_TTL']):
        user = User.refresh_api_token(user['UserId'], utc_now())

    return respond({'id': user['UserId'], 'token': api_token_hash(user['ApiToken'])}, root='auth')
