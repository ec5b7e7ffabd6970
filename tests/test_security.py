"""
tests/test_security.py
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core.security_manager import (
    api_token_expired, api_token_hash, basic_auth_header, generate_reset_token, hash_password,
    load_reset_token, parse_basic_auth, reset_token_matches, verify_api_token, verify_password,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
TTL = timedelta(hours=24)


def test_password_hash_round_trip():
    stored = hash_password('s3cret')
    assert '$' in stored
    assert verify_password('s3cret', stored)
    assert not verify_password('S3cret', stored)
    assert not verify_password('s3cret', None)


def test_password_hashes_are_salted():
    assert hash_password('s3cret') != hash_password('s3cret')


def test_api_token_expiry():
    assert api_token_expired(None, TTL, NOW)
    assert api_token_expired('garbage', TTL, NOW)
    assert not api_token_expired((NOW - timedelta(hours=23)).isoformat(), TTL, NOW)
    assert api_token_expired((NOW - timedelta(hours=25)).isoformat(), TTL, NOW)


def test_verify_api_token():
    issued = (NOW - timedelta(hours=1)).isoformat()
    user = {'UserId': 1, 'ApiToken': issued}
    assert verify_api_token(user, api_token_hash(issued), TTL, NOW)
    assert not verify_api_token(user, 'bad-token', TTL, NOW)
    assert not verify_api_token(None, api_token_hash(issued), TTL, NOW)
    assert not verify_api_token(user, api_token_hash(issued), TTL, NOW + timedelta(days=2))


def test_basic_auth_header():
    assert parse_basic_auth(basic_auth_header('admin@user.com', 'pa:ss')) == ('admin@user.com', 'pa:ss')
    assert parse_basic_auth(None) is None
    assert parse_basic_auth('Bearer abc') is None
    assert parse_basic_auth('Basic !!!not-base64!!!') is None


def test_reset_token():
    user = {'UserId': 7, 'Password': hash_password('old')}
    token = generate_reset_token('secret', user)
    payload = load_reset_token('secret', token, max_age=3600)
    assert payload['id'] == 7
    assert reset_token_matches(payload, user)
    assert not reset_token_matches(payload, {**user, 'Password': hash_password('new')})
    assert load_reset_token('other-secret', token, max_age=3600) is None
