from flask import Blueprint, jsonify, request
from flask_login import current_user
from fantasy.models import LeagueTeam, SeasonStanding
from fantasy.services.contests import join_contest
from fantasy.services.scoring import compute_contest_leaderboard, compute_season_leaderboard
from fantasy.services.scoring.notify import SocketIONotifier

contests = Blueprint('contests', __name__)


@contests.route('/contests/<int:contest_id>/join', methods=['POST'])
def join(contest_id):
    data = request.get_json(silent=True) or {}
    viewer_name = data.get('viewer_name')
    if current_user.is_authenticated and current_user.display_name:
        viewer_name = current_user.display_name
    team_id = data.get('team_id')
    if not viewer_name and team_id is None:
        return jsonify({'error': 'viewer_name required'}), 400
    if team_id is not None:
        try:
            team_id = int(team_id)
        except (TypeError, ValueError):
            return jsonify({'error': 'team_id must be an integer'}), 400
    entry = join_contest(contest_id, viewer_name=viewer_name, team_id=team_id, notifier=SocketIONotifier())
    return jsonify({'ok': True, 'entry': entry.to_dict()}), 201


@contests.route('/contests/<int:contest_id>/leaderboard', methods=['GET'])
def contest_leaderboard(contest_id):
    return jsonify({'ok': True, 'leaderboard': compute_contest_leaderboard(contest_id)})


@contests.route('/season/leaderboard', methods=['GET'])
def season_leaderboard():
    """Fresh season standings; ``?cached=1`` serves the last snapshot instead."""
    if request.args.get('cached') in ('1', 'true'):
        rows = SeasonStanding.query.order_by(SeasonStanding.total_points.desc(), SeasonStanding.viewer_name).all()
        return jsonify({'ok': True, 'leaderboard': [r.to_dict() for r in rows]})
    return jsonify({'ok': True, 'leaderboard': compute_season_leaderboard()})


@contests.route('/league/teams', methods=['GET'])
def league_teams():
    teams = LeagueTeam.query.order_by(LeagueTeam.name).all()
    return jsonify({'ok': True, 'teams': [t.to_dict() for t in teams]})
