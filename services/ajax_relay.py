# services/ajax_relay.py
"""
Relay of admin ajax calls to the api app.

e.g. GET admin.app.com/ajax/members/123456 => GET api.app.com/members/123456

The logged-in user's API token is (re-)issued in the same manner as a call to
the api's /auth resource, and the request is forwarded with Basic auth
credentials 'UserId:sha1(ApiToken)'.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import requests

from core.models import User
from core.security_manager import api_token_expired, api_token_hash, basic_auth_header, utc_now

logger = logging.getLogger(__name__)


@dataclass
class RelayResult:
    """Upstream response: status, decoded body and whether it was JSON"""
    status: int
    body: Any
    is_json: bool


def ensure_api_token(user: Dict[str, Any], ttl: timedelta, now: Optional[datetime] = None) -> Dict[str, Any]:
    """The user, with a fresh API token if theirs is missing or has expired"""
    if api_token_expired(user.get('ApiToken'), ttl, now):
        user = User.refresh_api_token(user['UserId'], now or utc_now())
        logger.info(f"API token renewed for user {user['UserId']}")
    return user


def api_url(scheme: str, host: str, resource: str, query_string: str = '') -> str:
    """URL of *resource* on the api host corresponding to admin *host*"""
    url = f"{scheme}://{host.replace('admin', 'api', 1)}/{resource}"
    if query_string:
        url += '?' + query_string
    return url


def relay_headers(user: Dict[str, Any], accept: Optional[str]) -> Dict[str, str]:
    username = str(user['UserId'])
    password = api_token_hash(user['ApiToken'])
    return {
        'Content-Type': 'application/json',
        'Accept': accept or 'application/json',
        'Authorization': basic_auth_header(username, password),
    }


def relay_body(body) -> str:
    """JSON request body, or empty for an empty body"""
    if not body:
        return ''
    return json.dumps(body)


def forward(method: str, url: str, body: str, headers: Dict[str, str], timeout: float = 30) -> RelayResult:
    """
    Forward the request; network failures (offline, DNS fail, etc) are
    reported as a 500 with the error message
    """
    try:
        response = requests.request(method, url, data=body.encode() if body else None,
                                    headers=headers, timeout=timeout)
    except requests.RequestException as e:
        logger.warning(f"Ajax relay {method} {url} failed: {e}")
        return RelayResult(500, str(e), False)

    content_type = response.headers.get('Content-Type') or ''
    if 'application/json' in content_type:
        try:
            return RelayResult(response.status_code, response.json(), True)
        except ValueError:
            logger.warning(f"Ajax relay {method} {url}: invalid JSON in response")
    return RelayResult(response.status_code, response.text, False)


def relay(user: Dict[str, Any], method: str, scheme: str, host: str, resource: str,
          query_string: str, body, accept: Optional[str], ttl: timedelta,
          timeout: float = 30) -> RelayResult:
    """Refresh the user's API token if need be, then forward the request to the api"""
    user = ensure_api_token(user, ttl)
    url = api_url(scheme, host, resource, query_string)
    return forward(method, url, relay_body(body), relay_headers(user, accept), timeout)
