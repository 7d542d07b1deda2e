import json
import os
import time

from flask import Blueprint, Response, current_app, jsonify, request

from fantasy import db
from fantasy.errors import FantasyError, ValidationError
from fantasy.main import admin_required
from fantasy.models import Contest, LeagueTeam, Match, Team, TeamEntry, parse_datetime, utcnow
from fantasy.services.providers import fetch_scorecard, normalize_scorecard, ocr_image
from fantasy.services.scoring import compute_season_leaderboard, recompute_match
from fantasy.services.scoring.notify import (
    CONTEST_DELETED,
    MATCH_DELETED,
    ROSTER_UPDATE,
    SocketIONotifier,
)
from fantasy.services.teams import normalize_roster, parse_roster_csv, teams_csv
from fantasy.services.uploads import public_url, save_image, upload_dir

admin = Blueprint('admin', __name__)


def _parse_time(value, field):
    try:
        return parse_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


@admin.route('/matches', methods=['POST'])
@admin_required
def create_match():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Match name required'}), 400
    match = Match(
        name=name,
        start_time=_parse_time(data.get('start_time'), 'start_time'),
        stream_url=data.get('stream_url') or '',
        team_a=data.get('team_a') or '',
        team_b=data.get('team_b') or '',
        external_id=str(data.get('external_id') or ''),
    )
    db.session.add(match)
    db.session.commit()
    current_app.logger.info(f"[match-create] match={match.id} name={match.name!r}")
    return jsonify({'ok': True, 'match': match.to_dict()}), 201


@admin.route('/matches/<int:match_id>', methods=['DELETE'])
@admin_required
def delete_match(match_id):
    match = db.get_or_404(Match, match_id)
    TeamEntry.query.filter_by(match_id=match.id).delete()
    Contest.query.filter_by(match_id=match.id).delete()
    Team.query.filter_by(match_id=match.id).delete()
    db.session.delete(match)
    db.session.commit()
    SocketIONotifier().publish(None, MATCH_DELETED, {'match_id': match_id})
    return jsonify({'ok': True})


@admin.route('/matches/<int:match_id>/roster', methods=['POST'])
@admin_required
def save_roster(match_id):
    match = db.get_or_404(Match, match_id)
    data = request.get_json(silent=True) or {}
    match.players = normalize_roster(data.get('players') or [])
    db.session.commit()
    SocketIONotifier().publish(match.id, ROSTER_UPDATE, {'match_id': match.id, 'players': match.players})
    return jsonify({'ok': True, 'count': len(match.players)})


@admin.route('/matches/<int:match_id>/roster-csv', methods=['POST'])
@admin_required
def upload_roster_csv(match_id):
    match = db.get_or_404(Match, match_id)
    upload = request.files.get('roster_csv')
    if upload is None:
        return jsonify({'error': 'No file'}), 400
    players = parse_roster_csv(upload.read().decode('utf-8-sig', errors='replace'))
    match.players = players
    db.session.commit()
    SocketIONotifier().publish(match.id, ROSTER_UPDATE, {'match_id': match.id, 'players': players})
    return jsonify({'ok': True, 'count': len(players)})


@admin.route('/matches/<int:match_id>/contests', methods=['POST'])
@admin_required
def create_contest(match_id):
    match = db.get_or_404(Match, match_id)
    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    if not title:
        return jsonify({'error': 'title required'}), 400
    try:
        contest = Contest(
            match_id=match.id,
            title=title,
            entry_fee=float(data.get('entry_fee') or 0),
            max_entries=int(data['max_entries']) if data.get('max_entries') is not None else 1000,
            per_viewer_limit=int(data['per_viewer_limit']) if data.get('per_viewer_limit') is not None else 1,
            close_time=_parse_time(data.get('close_time'), 'close_time'),
        )
    except (TypeError, ValueError):
        return jsonify({'error': 'entry_fee, max_entries and per_viewer_limit must be numbers'}), 400
    if contest.max_entries < 0 or contest.per_viewer_limit < 0:
        return jsonify({'error': 'Limits cannot be negative'}), 400
    db.session.add(contest)
    db.session.commit()
    return jsonify({'ok': True, 'contest': contest.to_dict()}), 201


@admin.route('/contests/<int:contest_id>', methods=['DELETE'])
@admin_required
def delete_contest(contest_id):
    contest = db.get_or_404(Contest, contest_id)
    match_id = contest.match_id
    TeamEntry.query.filter_by(contest_id=contest.id).delete()
    db.session.delete(contest)
    db.session.commit()
    SocketIONotifier().publish(match_id, CONTEST_DELETED, {'contest_id': contest_id})
    return jsonify({'ok': True})


@admin.route('/matches/<int:match_id>/stats', methods=['POST'])
@admin_required
def submit_stats(match_id):
    data = request.get_json(silent=True) or {}
    result = recompute_match(match_id, data.get('stats'), notifier=SocketIONotifier())
    return jsonify({'ok': True, 'result': result.to_dict()})


@admin.route('/matches/<int:match_id>/fetch-scorecard', methods=['POST'])
@admin_required
def fetch_and_process_scorecard(match_id):
    match = db.get_or_404(Match, match_id)
    provider = (request.get_json(silent=True) or {}).get('provider') or 'example'
    raw = fetch_scorecard(match, provider)
    stats = normalize_scorecard(provider, raw)
    result = recompute_match(match.id, stats, notifier=SocketIONotifier())
    return jsonify({'ok': True, 'result': result.to_dict()})


@admin.route('/matches/<int:match_id>/upload-scorecard', methods=['POST'])
@admin_required
def upload_scorecard(match_id):
    match = db.get_or_404(Match, match_id)
    data = request.get_json(silent=True) or {}
    provider = data.get('provider') or 'example'
    raw = data.get('raw')
    if not raw:
        return jsonify({'error': 'Missing raw scorecard JSON in body (raw)'}), 400

    file_name = f"scorecard_raw_{match.id}_{int(time.time() * 1000)}.json"
    with open(os.path.join(upload_dir(), file_name), 'w', encoding='utf-8') as fh:
        json.dump({'provider': provider, 'raw': raw}, fh, indent=2)

    try:
        stats = normalize_scorecard(provider, raw)
    except FantasyError as exc:
        return jsonify({
            'ok': True,
            'message': 'Saved raw JSON; normalization failed',
            'path': f'/uploads/{file_name}',
            'error': exc.message,
        })
    result = recompute_match(match.id, stats, notifier=SocketIONotifier())
    return jsonify({'ok': True, 'message': 'Scorecard processed', 'path': f'/uploads/{file_name}',
                    'result': result.to_dict()})


@admin.route('/matches/<int:match_id>/upload-score-screenshot', methods=['POST'])
@admin_required
def upload_score_screenshot(match_id):
    match = db.get_or_404(Match, match_id)
    file_name = save_image(request.files.get('screenshot'), 'score-screens', f'scoreshot_{match.id}')
    screens = upload_dir('score-screens')

    ocr_text = ocr_image(os.path.join(screens, file_name))
    meta = {'match_id': match.id, 'file': file_name, 'uploaded_at': utcnow().isoformat(), 'ocr_text': ocr_text}
    with open(os.path.join(screens, f'{file_name}.meta.json'), 'w', encoding='utf-8') as fh:
        json.dump(meta, fh, indent=2)
    return jsonify({'ok': True, 'path': public_url('score-screens', file_name), 'ocr_text': ocr_text})


@admin.route('/league/<int:league_team_id>/logo', methods=['POST'])
@admin_required
def upload_league_logo(league_team_id):
    league_team = db.get_or_404(LeagueTeam, league_team_id)
    file_name = save_image(request.files.get('logo'), 'league-logos', f'league_{league_team.id}')
    league_team.logo_url = public_url('league-logos', file_name)
    db.session.commit()
    return jsonify({'ok': True, 'logo_url': league_team.logo_url})


@admin.route('/matches/<int:match_id>/export-teams', methods=['GET'])
@admin_required
def export_teams(match_id):
    match = db.get_or_404(Match, match_id)
    teams = Team.query.filter_by(match_id=match.id).order_by(Team.id).all()
    return Response(
        teams_csv(teams),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename=match-{match.id}-teams.csv'},
    )


@admin.route('/season/recompute', methods=['POST'])
@admin_required
def recompute_season():
    return jsonify({'ok': True, 'leaderboard': compute_season_leaderboard(write_snapshot=True)})
