"""
tests/test_dispatch.py
"""
from __future__ import annotations

import pytest
from werkzeug.test import Client


@pytest.fixture
def client(dispatcher) -> Client:
    return Client(dispatcher)


def test_www_host(client):
    rv = client.get('/', base_url='http://www.localhost/')
    assert rv.status_code == 200
    assert 'Welcome to localhost' in rv.text


def test_api_host(client):
    rv = client.get('/', base_url='http://api.localhost/')
    assert rv.status_code == 200
    assert rv.json['root'] == 'api'


def test_admin_host_requires_login(client):
    rv = client.get('/', base_url='http://admin.localhost/')
    assert rv.status_code == 302
    assert '/login' in rv.headers['Location']


def test_host_with_port(client):
    rv = client.get('/', base_url='http://api.localhost:5000/')
    assert rv.json['root'] == 'api'


def test_bare_host_redirects_to_www(client):
    rv = client.get('/about?lang=en', base_url='http://localhost/')
    assert rv.status_code == 302
    assert rv.headers['Location'] == 'http://www.localhost/about?lang=en'


def test_unknown_subdomain_redirects_to_www(client):
    rv = client.get('/', base_url='http://ftp.localhost/')
    assert rv.status_code == 302
    assert rv.headers['Location'] == 'http://www.ftp.localhost/'
