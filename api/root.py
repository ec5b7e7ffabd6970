# api/root.py
"""
Root element: uri's for the available resources & a note on authentication
"""

from flask import Blueprint

from api.responses import respond

root_bp = Blueprint('root', __name__)


@root_bp.route('/', methods=['GET'])
def get_root():
    resources = {
        'auth': {'_uri': '/auth'},
        'members': {'_uri': '/members'},
        'teams': {'_uri': '/teams'},
    }
    authentication = '‘GET /auth’ to obtain {id, token}; subsequent requests require basic auth ‘id:token’'
    return respond({'resources': resources, 'authentication': authentication, 'root': 'api'}, root='api')
