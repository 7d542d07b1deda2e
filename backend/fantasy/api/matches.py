from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from fantasy import db
from fantasy.models import Contest, Match, Team, TeamEntry
from fantasy.services.scoring import compute_leaderboard
from fantasy.services.teams import create_team
from fantasy.services.uploads import public_url, save_image

matches = Blueprint('matches', __name__)


def _viewer_name():
    if current_user.is_authenticated:
        return current_user.display_name
    return None


def _owns_team(team):
    if current_user.is_admin or team.user_id == current_user.id:
        return True
    return bool(current_user.display_name) and team.viewer_name == current_user.display_name


@matches.route('', methods=['GET'])
def list_matches():
    rows = Match.query.order_by(Match.start_time.desc().nullslast(), Match.id.desc()).all()
    return jsonify([m.to_dict(include_stats=False) for m in rows])


@matches.route('/<int:match_id>', methods=['GET'])
def get_match(match_id):
    match = db.get_or_404(Match, match_id)
    return jsonify(match.to_dict())


@matches.route('/<int:match_id>/players', methods=['GET'])
def get_players(match_id):
    match = db.get_or_404(Match, match_id)
    return jsonify({'ok': True, 'players': list(match.players or [])})


@matches.route('/<int:match_id>/teams', methods=['POST'])
def submit_team(match_id):
    match = db.get_or_404(Match, match_id)
    data = request.get_json(silent=True) or {}
    viewer_name = _viewer_name() or data.get('viewer_name')
    team = create_team(
        match,
        players=data.get('players'),
        captain=data.get('captain'),
        vice=data.get('vice'),
        viewer_name=viewer_name,
        name=data.get('name') or '',
        user_id=current_user.id if current_user.is_authenticated else None,
        linked_channel=data.get('linked_channel') or '',
    )
    return jsonify({'ok': True, 'team': team.to_dict()}), 201


@matches.route('/<int:match_id>/team/<string:viewer_name>', methods=['GET'])
def get_team(match_id, viewer_name):
    team = Team.query.filter_by(match_id=match_id, viewer_name=viewer_name).first()
    if not team:
        return jsonify({'ok': False, 'team': None})
    return jsonify({'ok': True, 'team': team.to_dict()})


@matches.route('/<int:match_id>/teams/<int:team_id>/logo', methods=['POST'])
@login_required
def upload_team_logo(match_id, team_id):
    team = db.get_or_404(Team, team_id)
    if team.match_id != match_id:
        return jsonify({'error': 'Team does not belong to this match'}), 400
    if not _owns_team(team):
        return jsonify({'error': 'Not allowed to change this team'}), 403
    file_name = save_image(request.files.get('logo'), 'team-logos', f'team_{team.id}')
    team.logo_url = public_url('team-logos', file_name)
    db.session.commit()
    return jsonify({'ok': True, 'logo_url': team.logo_url})


@matches.route('/<int:match_id>/leaderboard', methods=['GET'])
def leaderboard(match_id):
    return jsonify({'ok': True, 'leaderboard': compute_leaderboard(match_id)})


@matches.route('/<int:match_id>/contests', methods=['GET'])
def list_contests(match_id):
    contests = Contest.query.filter_by(match_id=match_id, archived=False).order_by(Contest.id).all()
    viewer_name = _viewer_name() or request.args.get('viewer_name')
    payload = []
    for c in contests:
        cd = c.to_dict()
        cd['entry_count'] = TeamEntry.query.filter_by(contest_id=c.id).count()
        cd['my_entries'] = (
            TeamEntry.query.filter_by(contest_id=c.id, viewer_name=viewer_name).count() if viewer_name else 0
        )
        payload.append(cd)
    return jsonify(payload)
