"""Fantasy team creation and match roster handling."""

import csv
import io
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from fantasy import db
from fantasy.errors import PreconditionError, ValidationError
from fantasy.models import Match, Team, utcnow
from fantasy.services.scoring.normalize import name_key

TEAM_SIZE = 11
ROLES = ('BAT', 'BWL', 'ALL', 'WK')


def create_team(match: Match, players, captain, vice, viewer_name, name='',
                user_id: Optional[int] = None, linked_channel='', now=None) -> Team:
    """Validate and store a viewer's lineup for a match.

    Lineups are 11 distinct players; captain and vice are two different
    members of it. When the match has a roster, every pick must be on it.
    """
    viewer_name = (viewer_name or '').strip()
    if not viewer_name:
        raise ValidationError('viewer_name required')
    if not isinstance(players, list) or len(players) != TEAM_SIZE:
        raise ValidationError(f'Team must have {TEAM_SIZE} players')
    if not all(isinstance(p, str) and p.strip() for p in players):
        raise ValidationError('Player names must be non-empty strings')
    players = [p.strip() for p in players]
    keys = [name_key(p) for p in players]
    if len(set(keys)) != TEAM_SIZE:
        raise ValidationError('Team has duplicate players')

    captain = (captain or '').strip()
    vice = (vice or '').strip()
    if name_key(captain) not in keys:
        raise ValidationError('Captain must be one of the selected players')
    if name_key(vice) not in keys:
        raise ValidationError('Vice-captain must be one of the selected players')
    if name_key(captain) == name_key(vice):
        raise ValidationError('Captain and vice-captain must be different players')

    roster = {name_key(p.get('player_name')) for p in match.players or [] if isinstance(p, dict)}
    if roster:
        unknown = [p for p, k in zip(players, keys) if k not in roster]
        if unknown:
            raise ValidationError(f"Not in match roster: {', '.join(unknown)}")

    if match.has_started(now or utcnow()):
        raise PreconditionError(PreconditionError.CLOSED, 'Match already started')
    if Team.query.filter_by(match_id=match.id, viewer_name=viewer_name).first():
        raise PreconditionError(PreconditionError.DUPLICATE, 'Viewer already has a team for this match')

    team = Team(
        match_id=match.id,
        user_id=user_id,
        players=players,
        captain=captain,
        vice=vice,
        name=(name or '').strip(),
        viewer_name=viewer_name,
        linked_channel=(linked_channel or '').strip(),
    )
    db.session.add(team)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise PreconditionError(PreconditionError.DUPLICATE, 'Viewer already has a team for this match')
    return team


def normalize_roster_entry(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    name = str(raw.get('player_name') or raw.get('playerName') or raw.get('playername') or '').strip()
    if not name:
        return None
    role = str(raw.get('role') or 'BAT').strip().upper()
    try:
        credits = float(raw.get('credits') or 0)
    except (TypeError, ValueError):
        credits = 0.0
    return {
        'player_id': str(raw.get('player_id') or raw.get('playerId') or raw.get('playerid') or ''),
        'player_name': name,
        'role': role if role in ROLES else 'BAT',
        'real_team': str(raw.get('real_team') or raw.get('realTeam') or raw.get('realteam') or ''),
        'credits': credits,
        'status': str(raw.get('status') or 'active'),
    }


def normalize_roster(entries) -> List[Dict[str, Any]]:
    if not isinstance(entries, list):
        raise ValidationError('players must be a list')
    roster = []
    for raw in entries:
        if isinstance(raw, dict):
            entry = normalize_roster_entry(raw)
            if entry:
                roster.append(entry)
    return roster


def parse_roster_csv(text: str) -> List[Dict[str, Any]]:
    """Roster rows from CSV text. Needs a ``playername`` column; headers are case-insensitive."""
    text = text.lstrip('\ufeff').strip()
    if not text:
        return []
    reader = csv.DictReader(io.StringIO(text))
    reader.fieldnames = [(h or '').strip().lower() for h in reader.fieldnames or []]
    if 'playername' not in reader.fieldnames:
        raise ValidationError('CSV needs a playername column')
    rows = []
    for row in reader:
        entry = normalize_roster_entry({k: (v or '').strip() for k, v in row.items() if k})
        if entry:
            rows.append(entry)
    return rows


def teams_csv(teams) -> str:
    out = io.StringIO()
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(['name', 'viewer_name', 'players', 'captain', 'vice', 'total_points'])
    for t in teams:
        writer.writerow([t.name, t.viewer_name, '|'.join(t.players or []), t.captain, t.vice, t.total_points or 0])
    return out.getvalue()
