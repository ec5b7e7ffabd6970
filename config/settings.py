# config/settings.py
"""
Environment-based configuration for the www, admin and api apps
"""

import os
import secrets
from datetime import timedelta

from dotenv import load_dotenv

from config.security import SecurityConfig

load_dotenv()


class BaseConfig(SecurityConfig):
    """Settings shared by every environment"""

    ENV_NAME = 'production'

    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_urlsafe(32)

    # Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///members.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Capped access/error log store
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    LOG_ACCESS_MAX = 1000
    LOG_ERROR_MAX = 1000

    # Application logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR')
    SLOW_REQUEST_THRESHOLD = 1000  # ms

    # Mail
    SMTP_CONNECTION = os.environ.get('SMTP_CONNECTION', '')
    MAIL_FROM = os.environ.get('MAIL_FROM', 'noreply@movable-type.co.uk')
    MAIL_SUPPRESS_SEND = False

    # API authentication
    API_TOKEN_TTL = timedelta(hours=24)
    API_RELAY_TIMEOUT = 30  # seconds
    PASSWORD_RESET_MAX_AGE = 60 * 60 * 24  # seconds

    # Static files: allow browsers to cache for 1 day
    SEND_FILE_MAX_AGE_DEFAULT = timedelta(days=1)

    # Rate limiting (Flask-Limiter)
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_HEADERS_ENABLED = True

    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')


class DevelopmentConfig(BaseConfig):
    ENV_NAME = 'development'
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    SESSION_COOKIE_SECURE = False
    SEND_FILE_MAX_AGE_DEFAULT = timedelta(seconds=1)


class TestingConfig(BaseConfig):
    ENV_NAME = 'testing'
    TESTING = True
    SECRET_KEY = 'testing-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SESSION_COOKIE_SECURE = False
    SEND_FILE_MAX_AGE_DEFAULT = timedelta(seconds=1)
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    MAIL_SUPPRESS_SEND = True


class ProductionConfig(BaseConfig):
    ENV_NAME = 'production'
    DEBUG = False


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(config_name=None):
    """Return the config class for *config_name* (default from FLASK_ENV)"""
    config_name = config_name or os.environ.get('FLASK_ENV', 'production')
    return CONFIGS.get(config_name, ProductionConfig)
