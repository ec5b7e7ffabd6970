# middleware/request_logging.py
"""
Request timing & access logging into the capped log store
"""

import time

from flask import Flask, g, request


def register_request_logging(app: Flask, log_store) -> None:
    """
    Time every request and record it in the access log (static files excluded)
    """
    @app.before_request
    def start_timer():
        g.start_time = time.perf_counter()

    @app.after_request
    def log_access(response):
        if request.endpoint == 'static' or not hasattr(g, 'start_time'):
            return response

        ms = round((time.perf_counter() - g.start_time) * 1000)
        user = g.get('user')
        log_store.access(request, response, ms, user_id=_user_id(user))

        if ms > app.config.get('SLOW_REQUEST_THRESHOLD', 1000):
            app.logger.warning(f"Slow request ({ms}ms): {request.method} {request.path}")

        return response


def log_error(app: Flask, log_store, err: BaseException, status: int) -> None:
    """Record a request failure in the error log (and the application log for 5xx)"""
    if status >= 500:
        app.logger.error(f"{request.method} {request.path} failed: {err}", exc_info=err)
    log_store.error(request, err, status, user_id=_user_id(g.get('user')))


def _user_id(user):
    if not user:
        return None
    return user.get('UserId')
