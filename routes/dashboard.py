# routes/dashboard.py
from flask import Blueprint, render_template

from core.models import Member, Team

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/')
def index():
    return render_template('index.html', member_count=Member.count(), team_count=Team.count())
