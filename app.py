# app.py
"""
Application factories for the www, admin and api apps, and the host
dispatcher which selects between them on the first label of the host name
(www.example.com, admin.example.com, api.example.com).

The factories share one setup: logging, database, capped access/error log
store, request timing, error handlers, body cleanup and security headers.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Any, Dict, Optional

import click
import redis
from flask import Flask, Response, render_template, request
from flask_cors import CORS
from flask_wtf.csrf import CSRFProtect
from werkzeug.exceptions import HTTPException, NotFound
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.utils import redirect
from werkzeug.wrappers import Request

from api.auth import auth_bp as api_auth_bp, limiter
from api.members import members_bp as api_members_bp
from api.responses import respond
from api.root import root_bp
from api.teams import teams_bp as api_teams_bp
from config.settings import get_config
from core.database_models import db
from core.log_store import LogStore, create_log_store, format_stack
from core.models import ModelError, User
from middleware.request_logging import log_error, register_request_logging
from middleware.security import (
    clean_post, load_logged_in_user, require_api_auth, require_login, security_headers
)
from routes.ajax import ajax_bp
from routes.auth import auth_bp
from routes.dashboard import dashboard_bp
from routes.dev import dev_bp
from routes.members import members_bp
from routes.www import www_bp

ROOT = Path(__file__).resolve().parent

csrf = CSRFProtect()

LOG_FORMAT = '%(asctime)s %(name)-20s[%(process)d] %(levelname)-8s %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(app: Flask) -> None:
    """
    Configure logging: app & module loggers propagate to a root handler on
    stderr, plus a rotating log file when LOG_DIR is set
    """
    # Remove default Flask handler to avoid duplicate logs
    app.logger.handlers.clear()

    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)
    app.logger.setLevel(log_level)

    root = logging.getLogger()
    root.setLevel(log_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if not any(getattr(handler, '_members_handler', False) for handler in root.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        stream_handler._members_handler = True
        root.addHandler(stream_handler)

        if app.config.get('LOG_DIR'):
            log_dir = Path(app.config['LOG_DIR'])
            log_dir.mkdir(exist_ok=True, parents=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_dir / 'members.log',
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5
            )
            file_handler.setFormatter(formatter)
            file_handler._members_handler = True
            root.addHandler(file_handler)

    # Suppress verbose third-party logs
    if not app.debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def configure_database(app: Flask) -> None:
    db.init_app(app)


def create_base_app(name: str, config_name: Optional[str] = None,
                    log_store: Optional[LogStore] = None,
                    redis_client: Optional[redis.Redis] = None,
                    config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """Flask app with configuration, logging, database & log store set up"""
    static_folder = str(ROOT / 'static') if name != 'api' else None
    app = Flask(name, root_path=str(ROOT), static_folder=static_folder,
                template_folder=str(ROOT / 'templates' / name))
    app.config.from_object(get_config(config_name))
    if config_overrides:
        app.config.update(config_overrides)

    setup_logging(app)
    configure_database(app)

    app.extensions['log_store'] = log_store or create_log_store(app, redis_client)
    register_request_logging(app, app.extensions['log_store'])

    app.after_request(security_headers)
    return app


def configure_html_error_handlers(app: Flask) -> None:
    """
    Error pages for the www & admin apps: 404 page (with a personalised
    message where there is one), anything else on the 500 page
    """
    @app.errorhandler(Exception)
    def handle_error(err):
        status = err.code if isinstance(err, HTTPException) else 500
        log_error(app, app.extensions['log_store'], err, status)

        if isinstance(err, HTTPException):
            message = err.description
        else:
            message = str(err) or err.__class__.__name__
        if status == 404:
            if message == NotFound.description:
                message = None
            return render_template('404-not-found.html', message=message, url=request.path), 404

        stack = None
        if app.config['ENV_NAME'] != 'production' and not isinstance(err, HTTPException):
            stack = format_stack(err)
        return render_template('500-internal-server-error.html', status=status, message=message,
                               stack=stack), status


def configure_api_error_handlers(app: Flask) -> None:
    """
    API errors: ModelError reports its status with the message as plain text;
    HTTP errors & anything unexpected report {message}
    """
    @app.errorhandler(ModelError)
    def handle_model_error(err):
        log_error(app, app.extensions['log_store'], err, err.status)
        return Response(err.message, status=err.status, mimetype='text/plain')

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        log_error(app, app.extensions['log_store'], err, err.code)
        return respond({'message': err.description}, err.code, root='error')

    @app.errorhandler(Exception)
    def handle_unexpected_error(err):
        log_error(app, app.extensions['log_store'], err, 500)
        return respond({'message': 'Internal Server Error'}, 500, root='error')


def register_commands(app: Flask) -> None:
    @app.cli.command('init-db')
    def init_db():
        """Create the database tables"""
        db.create_all()
        click.echo(f"Database tables created ({app.config['SQLALCHEMY_DATABASE_URI']})")

    @app.cli.command('create-user')
    @click.argument('email')
    @click.argument('password')
    @click.option('--firstname', default=None)
    @click.option('--lastname', default=None)
    @click.option('--role', type=click.Choice(['admin', 'user']), default='user')
    def create_user(email, password, firstname, lastname, role):
        """Add a user who can log in to the admin app"""
        try:
            user_id = User.insert({
                'Email': email, 'Password': password, 'Firstname': firstname,
                'Lastname': lastname, 'Role': role,
            })
        except ModelError as e:
            raise click.ClickException(e.message)
        click.echo(f"User {user_id} ({email}) created with role {role}")


def _domain_context(prefix: str):
    def inject_domain():
        return {'domain': request.host.replace(prefix, '', 1)}
    return inject_domain


def create_www_app(config_name: Optional[str] = None, log_store: Optional[LogStore] = None,
                   redis_client: Optional[redis.Redis] = None,
                   config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """Public website"""
    app = create_base_app('www', config_name, log_store, redis_client, config_overrides)

    configure_html_error_handlers(app)
    app.before_request(load_logged_in_user)
    app.before_request(clean_post)
    app.context_processor(_domain_context('www.'))
    csrf.init_app(app)

    app.register_blueprint(www_bp)
    register_commands(app)

    app.logger.info(f"www app created ({app.config['ENV_NAME']})")
    return app


def create_admin_app(config_name: Optional[str] = None, log_store: Optional[LogStore] = None,
                     redis_client: Optional[redis.Redis] = None,
                     config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """Members administration: login required throughout except for login & password reset"""
    app = create_base_app('admin', config_name, log_store, redis_client, config_overrides)

    configure_html_error_handlers(app)
    app.before_request(load_logged_in_user)
    app.before_request(clean_post)
    app.before_request(require_login())
    app.context_processor(_domain_context('admin.'))
    csrf.init_app(app)
    # relayed ajax calls are authenticated by the session, not by form token
    csrf.exempt(ajax_bp)

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(members_bp)
    app.register_blueprint(dev_bp)
    app.register_blueprint(ajax_bp)
    register_commands(app)

    app.logger.info(f"admin app created ({app.config['ENV_NAME']})")
    return app


def create_api_app(config_name: Optional[str] = None, log_store: Optional[LogStore] = None,
                   redis_client: Optional[redis.Redis] = None,
                   config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """RESTful API: members & teams, JSON or XML"""
    app = create_base_app('api', config_name, log_store, redis_client, config_overrides)

    configure_api_error_handlers(app)
    app.before_request(clean_post)
    app.before_request(require_api_auth())

    CORS(app, origins=app.config['CORS_ORIGINS'], allow_headers=['Content-Type', 'Authorization'],
         expose_headers=['Location'])
    limiter.init_app(app)

    app.register_blueprint(root_bp)
    app.register_blueprint(api_auth_bp)
    app.register_blueprint(api_members_bp)
    app.register_blueprint(api_teams_bp)
    register_commands(app)

    app.logger.info(f"api app created ({app.config['ENV_NAME']})")
    return app


class HostDispatcher:
    """
    WSGI application dispatching to the app named by the first label of the
    host; other hosts are redirected to the www. host
    """

    def __init__(self, apps: Dict[str, Flask], proxied: bool = False):
        self.apps = apps
        self.wsgi_app = ProxyFix(self.dispatch, x_for=1, x_proto=1, x_host=1) if proxied else self.dispatch

    def app_for(self, host: str) -> Optional[Flask]:
        subdomain = host.split(':')[0].split('.')[0].lower()
        return self.apps.get(subdomain)

    def dispatch(self, environ, start_response):
        req = Request(environ)
        app = self.app_for(req.host)
        if app is None:
            path = req.full_path if req.query_string else req.path
            return redirect(f'{req.scheme}://www.{req.host}{path}', 302)(environ, start_response)
        return app(environ, start_response)

    def __call__(self, environ, start_response):
        return self.wsgi_app(environ, start_response)


def create_app(config_name: Optional[str] = None, redis_client: Optional[redis.Redis] = None,
               config_overrides: Optional[Dict[str, Any]] = None) -> HostDispatcher:
    """
    Build the www, admin & api apps sharing one log store, behind a host
    dispatcher
    """
    www = create_www_app(config_name, redis_client=redis_client, config_overrides=config_overrides)
    log_store = www.extensions['log_store']
    admin = create_admin_app(config_name, log_store=log_store, config_overrides=config_overrides)
    api = create_api_app(config_name, log_store=log_store, config_overrides=config_overrides)

    proxied = www.config['ENV_NAME'] == 'production'
    return HostDispatcher({'www': www, 'admin': admin, 'api': api}, proxied=proxied)
