from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from fantasy import db
from fantasy.errors import NotFoundError, ValidationError
from fantasy.models import Contest, Match, SeasonStanding, Team, TeamEntry, utcnow
from .normalize import build_lookup, name_key, normalize_statistics
from .notify import MatchNotifier, NullNotifier
from .points import compute_points


@dataclass
class RecomputeResult:
    match_id: int
    teams_updated: int = 0
    statistics_applied: int = 0
    dropped: int = 0
    failed: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'match_id': self.match_id,
            'teams_updated': self.teams_updated,
            'statistics_applied': self.statistics_applied,
            'dropped': self.dropped,
            'failed': list(self.failed),
        }


def lineup_total(players, captain, vice, lookup: Mapping[str, Mapping[str, Any]]) -> int:
    captain_key = name_key(captain)
    vice_key = name_key(vice)
    total = 0
    for player in players or []:
        key = name_key(player)
        is_captain = bool(captain_key) and key == captain_key
        is_vice = bool(vice_key) and key == vice_key
        total += compute_points(lookup.get(key), is_captain, is_vice)
    return total


def team_total(team: Team, lookup) -> int:
    return lineup_total(team.players, team.captain, team.vice, lookup)


def _get_match(match_id) -> Match:
    match = db.session.get(Match, match_id)
    if match is None:
        raise NotFoundError(f'Match {match_id} not found')
    return match


def recompute_match(match_id, raw_statistics, notifier: Optional[MatchNotifier] = None) -> RecomputeResult:
    """Replace a match's statistics and re-total every fantasy team of it.

    Safe to repeat: totals depend only on the statistics and the lineups.
    A team whose update fails is logged and skipped; ``teams_updated`` only
    counts teams that were written.
    """
    if not isinstance(raw_statistics, (list, tuple)):
        raise ValidationError('stats must be a list of player statistics')
    notifier = notifier or NullNotifier()
    match = _get_match(match_id)
    log = current_app.logger

    stats, dropped = normalize_statistics(raw_statistics)
    if dropped:
        log.warning(f"[recompute] match={match.id} dropped {dropped} statistic record(s) without a player name")
    lookup = build_lookup(stats)
    match.stats = list(lookup.values())
    db.session.add(match)
    db.session.commit()

    mid = match.id
    result = RecomputeResult(match_id=match.id, statistics_applied=len(lookup), dropped=dropped)
    teams = Team.query.filter_by(match_id=match.id).order_by(Team.id).all()
    for team in teams:
        team_id = team.id
        try:
            with db.session.begin_nested():
                team.total_points = team_total(team, lookup)
                db.session.add(team)
            result.teams_updated += 1
        except Exception:
            log.exception(f"[recompute] match={mid} team={team_id} update failed")
            result.failed.append(team_id)
    db.session.commit()

    log.info(
        f"[recompute] match={match.id} stats={result.statistics_applied} dropped={dropped} "
        f"teams={result.teams_updated}/{len(teams)}"
    )
    notifier.statistics_changed(match.id, match.stats)
    notifier.leaderboard_changed(match.id)
    return result


def _rank(rows: List[Dict[str, Any]], score_field: str) -> List[Dict[str, Any]]:
    # Competition ranking: ties share the rank of the first tied row
    previous = None
    for idx, row in enumerate(rows, start=1):
        if previous is None or row[score_field] != previous[score_field]:
            row['rank'] = idx
        else:
            row['rank'] = previous['rank']
        previous = row
    return rows


def compute_leaderboard(match_id) -> List[Dict[str, Any]]:
    """Match leaderboard from fresh totals.

    Ordered by total descending; ties go to the earlier team, then the lower id.
    """
    match = _get_match(match_id)
    lookup = build_lookup(match.stats)
    teams = Team.query.filter_by(match_id=match.id).all()
    rows = []
    for team in teams:
        rows.append({
            'team_id': team.id,
            'name': team.name,
            'viewer_name': team.viewer_name,
            'captain': team.captain,
            'vice': team.vice,
            'total': team_total(team, lookup),
            '_order': (team.created_at, team.id),
        })
    rows.sort(key=lambda r: (-r['total'], r['_order']))
    for row in rows:
        row.pop('_order')
    return _rank(rows, 'total')


def compute_contest_leaderboard(contest_id) -> List[Dict[str, Any]]:
    """Contest leaderboard scored from each entry's lineup as it was at join time."""
    contest = db.session.get(Contest, contest_id)
    if contest is None:
        raise NotFoundError(f'Contest {contest_id} not found')
    lookup = build_lookup(contest.match.stats if contest.match else [])
    rows = []
    for entry in TeamEntry.query.filter_by(contest_id=contest.id).all():
        rows.append({
            'entry_id': entry.id,
            'team_id': entry.team_id,
            'viewer_name': entry.viewer_name,
            'total': lineup_total(entry.players, entry.captain, entry.vice, lookup),
            '_order': (entry.created_at, entry.id),
        })
    rows.sort(key=lambda r: (-r['total'], r['_order']))
    for row in rows:
        row.pop('_order')
    return _rank(rows, 'total')


def viewer_key(team: Team) -> str:
    if team.user_id:
        return f"user:{team.user_id}"
    return name_key(team.viewer_name)


def compute_season_leaderboard(fallback_to_cached: Optional[bool] = None,
                               write_snapshot: bool = False) -> List[Dict[str, Any]]:
    """Per-viewer points summed over every match, recomputed from scratch.

    Read-only unless ``write_snapshot`` is set, which replaces the
    ``SeasonStanding`` rows with the result.

    A team whose fresh total is 0 contributes its cached total instead when
    the fallback is on, so seasons scored before statistics were kept on the
    match still count.
    """
    if fallback_to_cached is None:
        fallback_to_cached = bool(current_app.config.get('SEASON_CACHED_FALLBACK', True))

    lookups = {m.id: build_lookup(m.stats) for m in Match.query.all()}
    standings: Dict[str, Dict[str, Any]] = {}
    for team in Team.query.order_by(Team.id).all():
        fresh = team_total(team, lookups.get(team.match_id, {}))
        total = fresh
        if fresh <= 0 and fallback_to_cached:
            total = team.total_points or 0
        key = viewer_key(team)
        row = standings.get(key)
        if row is None:
            row = standings[key] = {
                'user_key': key,
                'viewer_name': team.viewer_name,
                'total_points': 0,
                'matches': set(),
            }
        row['total_points'] += total
        row['matches'].add(team.match_id)

    board = []
    for row in standings.values():
        board.append({
            'user_key': row['user_key'],
            'viewer_name': row['viewer_name'],
            'total_points': row['total_points'],
            'matches_played': len(row['matches']),
        })
    board.sort(key=lambda r: (-r['total_points'], r['viewer_name'].casefold(), r['user_key']))
    _rank(board, 'total_points')
    if write_snapshot:
        _write_season_snapshot(board)
    return board


def _write_season_snapshot(board: List[Dict[str, Any]]) -> None:
    now = utcnow()
    try:
        SeasonStanding.query.delete()
        for row in board:
            db.session.add(SeasonStanding(
                user_key=row['user_key'],
                viewer_name=row['viewer_name'],
                total_points=row['total_points'],
                matches_played=row['matches_played'],
                updated_at=now,
            ))
        db.session.commit()
    except IntegrityError:
        # A concurrent recompute wrote the snapshot first; the board itself is still correct
        db.session.rollback()
        current_app.logger.warning("[season] snapshot write lost a race; keeping the other writer's rows")
