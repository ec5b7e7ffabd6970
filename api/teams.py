# api/teams.py
"""
Teams resource, including team membership (/teams/:id/members)
"""

from flask import Blueprint, request, abort

from api.responses import respond
from core.models import ModelError, Team
from middleware.security import request_values

teams_bp = Blueprint('teams', __name__)


def _team_or_404(team_id):
    team = Team.get(team_id)
    if team is None:
        abort(404, description=f'No team {team_id} found')
    return team


@teams_bp.route('/teams', methods=['GET'])
def list_teams():
    filters = {field: value for field, value in request.args.items() if not field.startswith('_')}
    teams = Team.find(filters)
    if not teams:
        return '', 204
    return respond(teams, root='teams', item='team')


@teams_bp.route('/teams/<team_id>', methods=['GET'])
def get_team(team_id):
    """Team, with its members"""
    team = _team_or_404(team_id)
    team['members'] = Team.members(team['TeamId'])
    return respond(team, root='team')


@teams_bp.route('/teams', methods=['POST'])
def post_team():
    team_id = Team.insert(request_values())
    return respond(Team.get(team_id), 201, headers={'Location': f'/teams/{team_id}'}, root='team')


@teams_bp.route('/teams/<team_id>', methods=['PATCH', 'PUT'])
def patch_team(team_id):
    _team_or_404(team_id)
    Team.update(team_id, request_values())
    return respond(Team.get(team_id), root='team')


@teams_bp.route('/teams/<team_id>', methods=['DELETE'])
def delete_team(team_id):
    team = _team_or_404(team_id)
    Team.delete(team_id)
    return respond(team, root='team')


@teams_bp.route('/teams/<team_id>/members', methods=['POST'])
def post_team_member(team_id):
    """Add member (body {MemberId}) to team"""
    team = _team_or_404(team_id)
    values = request_values()
    if values.get('MemberId') is None:
        raise ModelError("Column 'MemberId' cannot be null", 400)
    membership_id = Team.add_member(team['TeamId'], values['MemberId'])
    return respond({'TeamMemberId': membership_id, 'TeamId': team['TeamId'], 'MemberId': int(values['MemberId'])},
                   201, headers={'Location': f"/teams/{team['TeamId']}"}, root='teammember')


@teams_bp.route('/teams/<team_id>/members/<member_id>', methods=['DELETE'])
def delete_team_member(team_id, member_id):
    team = _team_or_404(team_id)
    if not Team.remove_member(team['TeamId'], member_id):
        abort(404, description=f'Member {member_id} is not in team {team_id}')
    return respond({'TeamId': team['TeamId'], 'MemberId': int(member_id)}, root='teammember')
