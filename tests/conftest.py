"""
tests/conftest.py
"""
from __future__ import annotations

from pathlib import Path
from typing import Generator

import fakeredis
import pytest
from flask import Flask
from flask.testing import FlaskClient

from app import HostDispatcher, create_app
from core.database_models import db
from core.models import Member, User
from core.security_manager import basic_auth_header

ADMIN_EMAIL = 'admin@user.com'
ADMIN_PASSWORD = 'admin'

SEED_MEMBERS = [
    {'Firstname': 'Lewis', 'Lastname': 'Carroll', 'Email': 'lewis@carroll.com', 'Active': True},
    {'Firstname': 'Jane', 'Lastname': 'Austen', 'Email': 'jane@austen.com', 'Active': True},
    {'Firstname': 'Charles', 'Lastname': 'Dickens', 'Email': 'charles@dickens.com', 'Active': False},
]


@pytest.fixture(scope="session")
def _tmp_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """One temp file for the whole test session, shared by the three apps."""
    return tmp_path_factory.mktemp("data") / "test.sqlite3"


@pytest.fixture(scope="session")
def redis_client() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture(scope="session")
def dispatcher(_tmp_db_path: Path, redis_client) -> HostDispatcher:
    """
    Build the www/admin/api apps *once*, create the tables and seed an admin
    user plus a few members.
    """
    dispatcher = create_app(
        'testing',
        redis_client=redis_client,
        config_overrides={'SQLALCHEMY_DATABASE_URI': f'sqlite:///{_tmp_db_path}'},
    )
    api = dispatcher.apps['api']
    with api.app_context():
        db.create_all()
        User.insert({
            'Firstname': 'Admin', 'Lastname': 'User', 'Email': ADMIN_EMAIL,
            'Password': ADMIN_PASSWORD, 'Role': 'admin',
        })
        User.insert({
            'Firstname': 'Ordinary', 'Lastname': 'User', 'Email': 'user@user.com',
            'Password': 'user', 'Role': 'user',
        })
        for member in SEED_MEMBERS:
            Member.insert(member)
    return dispatcher


@pytest.fixture
def www_app(dispatcher) -> Flask:
    return dispatcher.apps['www']


@pytest.fixture
def admin_app(dispatcher) -> Flask:
    return dispatcher.apps['admin']


@pytest.fixture
def api_app(dispatcher) -> Flask:
    return dispatcher.apps['api']


@pytest.fixture
def app_ctx(api_app) -> Generator[Flask, None, None]:
    """Application context for direct model calls."""
    with api_app.app_context():
        yield api_app


@pytest.fixture
def www_client(www_app) -> FlaskClient:
    return www_app.test_client()


@pytest.fixture
def admin_client(admin_app) -> FlaskClient:
    return admin_app.test_client()


@pytest.fixture
def api_client(api_app) -> FlaskClient:
    return api_app.test_client()


@pytest.fixture
def logged_in_admin(admin_client) -> FlaskClient:
    """Admin-app client with the admin user logged in."""
    rv = admin_client.post('/login', data={'email': ADMIN_EMAIL, 'password': ADMIN_PASSWORD})
    assert rv.status_code == 302, rv.text
    return admin_client


@pytest.fixture
def api_auth(api_client) -> dict:
    """Authorization header for 'id:token' obtained from GET /auth."""
    rv = api_client.get('/auth', headers={'Authorization': basic_auth_header(ADMIN_EMAIL, ADMIN_PASSWORD)})
    assert rv.status_code == 200, rv.text
    body = rv.get_json()
    return {'Authorization': basic_auth_header(str(body['id']), body['token'])}
