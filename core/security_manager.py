# core/security_manager.py
"""
Credentials handling for the admin and api apps:
- password hashing and verification
- API token hashing and expiry
- HTTP Basic auth parsing
- password-reset tokens
"""

import base64
import binascii
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _derive(password: str, salt: str) -> str:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode(),
        iterations=PBKDF2_ITERATIONS,
        backend=default_backend()
    )
    return base64.b64encode(kdf.derive(password.encode())).decode()


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """
    Hash password with secure salt

    Returns:
        'salt$hash' string for storage
    """
    if salt is None:
        salt = secrets.token_hex(16)
    return f"{salt}${_derive(password, salt)}"


def verify_password(password: str, stored: Optional[str]) -> bool:
    """Verify password against a stored 'salt$hash'"""
    if not password or not stored or '$' not in stored:
        return False
    salt, hashed = stored.split('$', 1)
    return hmac.compare_digest(hashed, _derive(password, salt))


def api_token_hash(api_token: str) -> str:
    """The token handed to API clients: sha1 hex of the token issue timestamp"""
    return hashlib.sha1(api_token.encode()).hexdigest()


def api_token_expired(api_token: Optional[str], ttl: timedelta, now: Optional[datetime] = None) -> bool:
    """True if no token has been issued, or it was issued more than *ttl* ago"""
    if not api_token:
        return True
    try:
        issued = datetime.fromisoformat(api_token)
    except ValueError:
        return True
    if issued.tzinfo is None:
        issued = issued.replace(tzinfo=timezone.utc)
    return (now or utc_now()) - issued > ttl


def verify_api_token(user: dict, token: str, ttl: timedelta, now: Optional[datetime] = None) -> bool:
    if not user or not token or api_token_expired(user.get('ApiToken'), ttl, now):
        return False
    return hmac.compare_digest(api_token_hash(user['ApiToken']), token)


def basic_auth_header(username: str, password: str) -> str:
    credentials = f"{username}:{password}".encode('latin-1')
    return 'Basic ' + base64.b64encode(credentials).decode('ascii')


def parse_basic_auth(header: Optional[str]) -> Optional[Tuple[str, str]]:
    """Return (username, password) from an Authorization header, or None"""
    if not header:
        return None
    scheme, _, encoded = header.partition(' ')
    if scheme.lower() != 'basic' or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode('latin-1')
    except (binascii.Error, ValueError):
        return None
    username, sep, password = decoded.partition(':')
    if not sep:
        return None
    return username, password


# ------------ password reset tokens

def _reset_serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt='password-reset')


def generate_reset_token(secret_key: str, user: dict) -> str:
    """
    Token carrying the user id, bound to the current password hash so that
    it stops working once the password has been changed
    """
    fingerprint = hashlib.sha1((user.get('Password') or '').encode()).hexdigest()[:16]
    return _reset_serializer(secret_key).dumps({'id': user['UserId'], 'pw': fingerprint})


def load_reset_token(secret_key: str, token: str, max_age: int) -> Optional[dict]:
    """Return the token payload, or None if it is invalid or has expired"""
    try:
        return _reset_serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("Expired password reset token presented")
        return None
    except BadSignature:
        logger.warning("Invalid password reset token presented")
        return None


def reset_token_matches(payload: dict, user: dict) -> bool:
    fingerprint = hashlib.sha1((user.get('Password') or '').encode()).hexdigest()[:16]
    return hmac.compare_digest(payload.get('pw', ''), fingerprint)
