# routes/ajax.py
"""
Ajax calls from the admin pages are relayed to the api app, so the browser
never needs API credentials of its own
"""

from flask import Blueprint, Response, request, g, jsonify, current_app

from middleware.security import request_values
from services.ajax_relay import relay

ajax_bp = Blueprint('ajax', __name__, url_prefix='/ajax')


@ajax_bp.route('/<path:resource>', methods=['GET', 'POST', 'PATCH', 'PUT', 'DELETE'])
def relay_request(resource):
    result = relay(
        g.user,
        request.method,
        request.scheme,
        request.host,
        resource,
        request.query_string.decode(),
        request_values(),
        request.headers.get('Accept'),
        current_app.config['API_TOKEN_TTL'],
        timeout=current_app.config['API_RELAY_TIMEOUT'],
    )

    if result.is_json:
        response = jsonify(result.body)
        response.status_code = result.status
        return response
    return Response(result.body, status=result.status, mimetype='text/plain')
