# services/mail.py
"""
Outbound e-mail.

SMTP connection details come from the SMTP_CONNECTION setting, either as e.g.
    service=gmail; auth.user=me@gmail.com; auth.pass=mypw
or
    host=smtp.mailhost.com; port=587; auth.user=myusername; auth.pass=mypassword

Outside production, mail is never delivered to the indicated recipient: it
goes to the logged-in user (i.e. the developer) with an X-Orig-To header, or
is just logged when nobody is logged in.
"""

import asyncio
import logging
import os
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Any, Dict, List, Optional

import aiosmtplib
from email_validator import EmailNotValidError, validate_email
from flask import current_app, g

from core.template_engine import MailTemplateEngine, html_to_text

logger = logging.getLogger(__name__)

# well-known services: host, port
SMTP_SERVICES = {
    'gmail': ('smtp.gmail.com', 465),
    'outlook': ('smtp-mail.outlook.com', 587),
    'hotmail': ('smtp-mail.outlook.com', 587),
    'yahoo': ('smtp.mail.yahoo.com', 465),
    'sendgrid': ('smtp.sendgrid.net', 587),
    'mailgun': ('smtp.mailgun.org', 587),
}

MAIL_TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'templates', 'mail')

_transport = None  # SMTP transport - created on first usage


class MailError(Exception):
    """Base exception for mail sending operations"""
    pass


class SMTPConfigurationError(MailError):
    """SMTP configuration related errors"""
    pass


def parse_smtp_connection(connection: str) -> Dict[str, Any]:
    """
    'service=gmail; auth.user=me@gmail.com; auth.pass=mypw' =>
    {'service': 'gmail', 'auth': {'user': 'me@gmail.com', 'pass': 'mypw'}}
    """
    config = {}
    for setting in (connection or '').split(';'):
        if not setting.strip():
            continue
        key, _, value = setting.strip().partition('=')
        key, value = key.strip(), value.strip()
        head, dot, tail = key.partition('.')
        if dot:
            config.setdefault(head, {})[tail] = value
        else:
            config[key] = value
    if config.get('port'):
        config['secure'] = config['port'] == '465'
    return config


class SMTPTransport:
    """aiosmtplib delivery with settings from a parsed SMTP_CONNECTION"""

    def __init__(self, config: Dict[str, Any], timeout: int = 60):
        service = config.get('service')
        if service:
            if service.lower() not in SMTP_SERVICES:
                raise SMTPConfigurationError(f"Unknown SMTP service '{service}'")
            host, port = SMTP_SERVICES[service.lower()]
        else:
            host, port = config.get('host'), config.get('port') or 587
        if not host:
            raise SMTPConfigurationError("SMTP_CONNECTION requires 'service' or 'host'")

        auth = config.get('auth') or {}
        self.hostname = host
        self.port = int(port)
        self.username = auth.get('user')
        self.password = auth.get('pass')
        self.use_tls = self.port == 465  # Implicit TLS for port 465
        self.timeout = timeout

    async def _send(self, message) -> Dict[str, Any]:
        errors, response = await aiosmtplib.send(
            message,
            hostname=self.hostname,
            port=self.port,
            username=self.username,
            password=self.password,
            use_tls=self.use_tls,
            start_tls=False if self.use_tls else None,  # None: STARTTLS when offered
            timeout=self.timeout,
        )
        return {'rejected': list(errors), 'response': response}

    def send_message(self, message) -> Dict[str, Any]:
        return asyncio.run(self._send(message))


def transporter() -> SMTPTransport:
    """SMTP transport for the current app, built on first use"""
    global _transport
    if _transport is None:
        _transport = SMTPTransport(parse_smtp_connection(current_app.config['SMTP_CONNECTION']))
    return _transport


def reset_transport():
    global _transport
    _transport = None


def _recipients(to: str) -> List[str]:
    addresses = [address.strip() for address in to.split(',') if address.strip()]
    if not addresses:
        raise MailError('No recipient given')
    for address in addresses:
        try:
            validate_email(address, check_deliverability=False)
        except EmailNotValidError as e:
            raise MailError(f"Invalid recipient '{address}': {e}")
    return addresses


class Mail:
    """Send e-mail (templated, HTML or plain text)"""

    _engine = None

    @classmethod
    def engine(cls) -> MailTemplateEngine:
        if cls._engine is None:
            cls._engine = MailTemplateEngine(MAIL_TEMPLATE_DIR)
        return cls._engine

    @staticmethod
    def sender() -> str:
        return current_app.config['MAIL_FROM']

    @classmethod
    def send(cls, to: str, template: str, context: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Send e-mail using template.

        Args:
            to: E-mail recipient(s), comma-separated
            template: templates/mail/<template>.html; its <title> is the subject
            context: Context for mail-merge into template
        """
        if current_app.config['MAIL_SUPPRESS_SEND']:
            return None

        rendered = cls.engine().render(template, context)
        return cls._deliver(to, rendered.subject, html=rendered.html, text=rendered.text,
                            description=f'{rendered.subject} ({template})')

    @classmethod
    def send_html(cls, to: str, subject: str, html: str) -> Optional[Dict[str, Any]]:
        """Send e-mail with supplied html (plain-text part derived from it)"""
        if current_app.config['MAIL_SUPPRESS_SEND']:
            return None

        return cls._deliver(to, subject, html=html, text=html_to_text(html), description=subject)

    @classmethod
    def send_text(cls, to: str, subject: str, text: str) -> Optional[Dict[str, Any]]:
        """Send e-mail with supplied (plain-) text"""
        if current_app.config['MAIL_SUPPRESS_SEND']:
            return None

        return cls._deliver(to, subject, text=text, description=subject)

    @classmethod
    def build_message(cls, to: str, subject: str, html: Optional[str] = None, text: Optional[str] = None,
                      headers: Optional[Dict[str, str]] = None):
        if html is not None:
            msg = MIMEMultipart('alternative')
            msg.attach(MIMEText(text or '', 'plain', 'utf-8'))
            msg.attach(MIMEText(html, 'html', 'utf-8'))
        else:
            msg = MIMEText(text or '', 'plain', 'utf-8')

        msg['Subject'] = subject
        msg['From'] = cls.sender()
        msg['To'] = to
        msg['Date'] = formatdate(localtime=True)
        msg['Message-ID'] = make_msgid()
        for name, value in (headers or {}).items():
            msg[name] = value
        return msg

    @classmethod
    def _deliver(cls, to: str, subject: str, html: Optional[str] = None, text: Optional[str] = None,
                 description: str = '') -> Optional[Dict[str, Any]]:
        recipients = _recipients(to)
        headers = {}

        # don't send e-mail to live indicated recipient in dev/staging
        if current_app.config.get('ENV_NAME') != 'production':
            user = g.get('user')
            if not user:
                logger.info(f"Mail.send info: ‘{description}’ not sent to {to} from dev env")
                return None
            headers['X-Orig-To'] = ', '.join(recipients)
            to = user['Email']

        message = cls.build_message(to, subject, html=html, text=text, headers=headers)

        try:
            info = transporter().send_message(message)
        except aiosmtplib.SMTPException as e:
            logger.error(f"Mail.send failed: ‘{description}’ to {to}: {e}")
            raise MailError(str(e))

        logger.info(f"Mail.send info: ‘{description}’ sent to {to}, response: {info['response']}")
        return info
