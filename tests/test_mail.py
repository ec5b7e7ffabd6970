"""
tests/test_mail.py
"""
from __future__ import annotations

import aiosmtplib
import pytest
from flask import g

from core.template_engine import MailTemplateEngine
from services import mail
from services.mail import (
    MAIL_TEMPLATE_DIR, Mail, MailError, SMTPConfigurationError, SMTPTransport, parse_smtp_connection
)


class FakeTransport:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send_message(self, message):
        if self.error:
            raise self.error
        self.sent.append(message)
        return {'rejected': [], 'response': '250 OK'}


@pytest.fixture
def transport(monkeypatch, www_app):
    fake = FakeTransport()
    monkeypatch.setattr(mail, 'transporter', lambda: fake)
    monkeypatch.setitem(www_app.config, 'MAIL_SUPPRESS_SEND', False)
    return fake


# ───────────────────────── configuration ──────────────────────────────
def test_parse_service_connection():
    config = parse_smtp_connection('service=gmail; auth.user=me@gmail.com; auth.pass=mypw')
    assert config == {'service': 'gmail', 'auth': {'user': 'me@gmail.com', 'pass': 'mypw'}}


def test_parse_host_connection():
    config = parse_smtp_connection('host=smtp.mailhost.com; port=465; auth.user=u; auth.pass=p')
    assert config['host'] == 'smtp.mailhost.com'
    assert config['port'] == '465'
    assert config['secure'] is True
    assert config['auth'] == {'user': 'u', 'pass': 'p'}


def test_transport_from_service():
    transport = SMTPTransport(parse_smtp_connection('service=gmail; auth.user=me@gmail.com; auth.pass=pw'))
    assert (transport.hostname, transport.port, transport.use_tls) == ('smtp.gmail.com', 465, True)
    assert transport.username == 'me@gmail.com'


def test_transport_defaults_to_submission_port():
    transport = SMTPTransport(parse_smtp_connection('host=smtp.example.com'))
    assert (transport.port, transport.use_tls) == (587, False)


def test_transport_configuration_errors():
    with pytest.raises(SMTPConfigurationError):
        SMTPTransport(parse_smtp_connection('service=carrier-pigeon'))
    with pytest.raises(SMTPConfigurationError):
        SMTPTransport(parse_smtp_connection(''))


# ───────────────────────── templates ──────────────────────────────────
def test_render_password_reset_template():
    engine = MailTemplateEngine(MAIL_TEMPLATE_DIR)
    rendered = engine.render('password-reset.email', {
        'firstname': 'Lewis', 'reset_url': 'http://admin.localhost/password/reset/abc', 'host': 'localhost',
    })
    assert rendered.subject == 'Password reset for localhost'
    assert 'Hi Lewis' in rendered.text
    assert 'http://admin.localhost/password/reset/abc' in rendered.text
    assert 'font-family' not in rendered.text


# ───────────────────────── sending ────────────────────────────────────
def test_suppressed_send(www_app):
    with www_app.test_request_context('/'):
        assert Mail.send_text('someone@members.org', 'Hello', 'Hi there') is None


def test_dev_send_without_user_is_only_logged(www_app, transport):
    with www_app.test_request_context('/'):
        g.user = None
        assert Mail.send_text('someone@members.org', 'Hello', 'Hi there') is None
    assert transport.sent == []


def test_dev_send_goes_to_logged_in_user(www_app, transport):
    with www_app.test_request_context('/'):
        g.user = {'UserId': 1, 'Email': 'dev@user.com'}
        info = Mail.send_text('someone@members.org', 'Hello', 'Hi there')
    assert info['response'] == '250 OK'
    [message] = transport.sent
    assert message['To'] == 'dev@user.com'
    assert message['X-Orig-To'] == 'someone@members.org'
    assert message['Subject'] == 'Hello'
    assert message['From'] == www_app.config['MAIL_FROM']


def test_production_send_goes_to_recipient(www_app, transport, monkeypatch):
    monkeypatch.setitem(www_app.config, 'ENV_NAME', 'production')
    with www_app.test_request_context('/'):
        g.user = None
        Mail.send_html('someone@members.org', 'Hello', '<p>Hi <b>there</b></p>')
    [message] = transport.sent
    assert message['To'] == 'someone@members.org'
    assert message.get_content_type() == 'multipart/alternative'


def test_templated_send(www_app, transport, monkeypatch):
    monkeypatch.setitem(www_app.config, 'ENV_NAME', 'production')
    with www_app.test_request_context('/'):
        Mail.send('someone@members.org', 'password-reset.email',
                  {'firstname': 'Jane', 'reset_url': 'http://x/y', 'host': 'example.com'})
    [message] = transport.sent
    assert message['Subject'] == 'Password reset for example.com'


def test_invalid_recipient(www_app, transport):
    with www_app.test_request_context('/'):
        with pytest.raises(MailError):
            Mail.send_text('not an address', 'Hello', 'Hi')


def test_smtp_failure_raises_mail_error(www_app, monkeypatch):
    monkeypatch.setattr(mail, 'transporter', lambda: FakeTransport(error=aiosmtplib.SMTPException('boom')))
    monkeypatch.setitem(www_app.config, 'MAIL_SUPPRESS_SEND', False)
    monkeypatch.setitem(www_app.config, 'ENV_NAME', 'production')
    with www_app.test_request_context('/'):
        with pytest.raises(MailError):
            Mail.send_text('someone@members.org', 'Hello', 'Hi')
