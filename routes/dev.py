# routes/dev.py
"""
Developer tools: system info & access/error log viewers
"""

import platform
import sys
from importlib import metadata

from flask import Blueprint, render_template, request, current_app

from middleware.security import admin_required
from services.log_viewer import view_access, view_error

dev_bp = Blueprint('dev', __name__, url_prefix='/dev')

REPORTED_PACKAGES = (
    'flask', 'flask-sqlalchemy', 'sqlalchemy', 'redis', 'jinja2', 'werkzeug',
    'aiosmtplib', 'premailer', 'requests', 'ua-parser',
)


def _package_versions():
    versions = {}
    for name in REPORTED_PACKAGES:
        try:
            versions[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            versions[name] = None
    return versions


@dev_bp.route('/sysinfo')
@admin_required
def sysinfo():
    info = {
        'python': sys.version.split()[0],
        'implementation': platform.python_implementation(),
        'platform': platform.platform(),
        'hostname': platform.node(),
        'env': current_app.config['ENV_NAME'],
        'database': current_app.config['SQLALCHEMY_DATABASE_URI'].split('://')[0],
    }
    return render_template('dev-sysinfo.html', info=info, packages=_package_versions())


@dev_bp.route('/logs/access')
@admin_required
def logs_access():
    log_store = current_app.extensions['log_store']
    context = view_access(log_store.access_entries(), request.args.to_dict())
    return render_template('dev-logs-access.html', **context)


@dev_bp.route('/logs/error')
@admin_required
def logs_error():
    log_store = current_app.extensions['log_store']
    context = view_error(log_store.error_entries(), request.args.to_dict())
    return render_template('dev-logs-error.html', **context)
