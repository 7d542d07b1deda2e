import threading
import weakref
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from fantasy import db
from fantasy.errors import FantasyError, NotFoundError, PreconditionError, ValidationError
from fantasy.models import Contest, Team, TeamEntry, utcnow
from fantasy.services.scoring.notify import CONTEST_ENTRY_UPDATE, MatchNotifier, NullNotifier


# A contest's lock lives only while some join holds a reference to it
_contest_locks = weakref.WeakValueDictionary()
_registry_lock = threading.Lock()


def _contest_lock(contest_id) -> threading.Lock:
    with _registry_lock:
        lock = _contest_locks.get(int(contest_id))
        if lock is None:
            lock = threading.Lock()
            _contest_locks[int(contest_id)] = lock
        return lock


def _locked_contest(contest_id) -> Optional[Contest]:
    # Row lock serializes joins across processes; SQLite ignores FOR UPDATE
    stmt = db.select(Contest).filter_by(id=contest_id).with_for_update()
    return db.session.execute(stmt).scalar_one_or_none()


def _resolve_team(contest: Contest, viewer_name, team_id) -> Team:
    if team_id is not None:
        team = db.session.get(Team, team_id)
    else:
        team = Team.query.filter_by(match_id=contest.match_id, viewer_name=viewer_name).first()
    if team is None:
        raise NotFoundError('Create a team first')
    if viewer_name and team.viewer_name != viewer_name:
        raise ValidationError('Team belongs to another viewer')
    return team


def _check_and_insert(contest_id, viewer_name, team_id, now) -> TeamEntry:
    contest = _locked_contest(contest_id)
    if contest is None:
        raise NotFoundError(f'Contest {contest_id} not found')
    if contest.closed or contest.archived or contest.is_past_deadline(now):
        raise PreconditionError(PreconditionError.CLOSED, 'Contest closed')

    team = _resolve_team(contest, viewer_name, team_id)
    if team.match_id != contest.match_id:
        raise PreconditionError(PreconditionError.MISMATCH, 'Team does not belong to this contest\'s match')

    entries = TeamEntry.query.filter_by(contest_id=contest.id)
    if entries.filter_by(team_id=team.id).first() is not None:
        raise PreconditionError(PreconditionError.DUPLICATE, 'This team is already joined in the contest')

    # A limit of 0 means unlimited
    if contest.per_viewer_limit and entries.filter_by(viewer_name=team.viewer_name).count() >= contest.per_viewer_limit:
        raise PreconditionError(
            PreconditionError.LIMIT, f'Entry limit reached for viewer ({contest.per_viewer_limit})'
        )
    if contest.max_entries and entries.count() >= contest.max_entries:
        raise PreconditionError(PreconditionError.FULL, 'Contest is full')

    entry = TeamEntry(
        match_id=contest.match_id,
        contest_id=contest.id,
        team_id=team.id,
        viewer_name=team.viewer_name,
        players=list(team.players or []),
        captain=team.captain,
        vice=team.vice,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def join_contest(contest_id, viewer_name=None, team_id=None, now=None,
                 notifier: Optional[MatchNotifier] = None) -> TeamEntry:
    """Enter a viewer's team into a contest.

    The team is ``team_id`` when given, otherwise the viewer's team for the
    contest's match. Deadline, match, duplicate, per-viewer and capacity
    checks run with the insert inside one critical section per contest, so
    racing joins cannot both pass a check. Failures raise
    ``PreconditionError`` with a specific ``kind``.
    """
    if not viewer_name and team_id is None:
        raise ValidationError('viewer_name required')
    notifier = notifier or NullNotifier()
    now = now or utcnow()
    log = current_app.logger

    with _contest_lock(contest_id):
        try:
            entry = _check_and_insert(contest_id, viewer_name, team_id, now)
            # Read before commit expires the instance
            joined = {
                'match_id': entry.match_id,
                'contest_id': entry.contest_id,
                'entry_id': entry.id,
                'team_id': entry.team_id,
                'viewer_name': entry.viewer_name,
            }
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            log.warning(f"[join] contest={contest_id} team={team_id} viewer={viewer_name} duplicate at commit")
            raise PreconditionError(PreconditionError.DUPLICATE, 'This team is already joined in the contest')
        except FantasyError as exc:
            db.session.rollback()
            log.info(f"[join-reject] contest={contest_id} viewer={viewer_name} team={team_id} reason={exc.kind or exc.message}")
            raise

    log.info(f"[join] viewer={joined['viewer_name']} contest={joined['contest_id']} team={joined['team_id']}")
    notifier.publish(joined['match_id'], CONTEST_ENTRY_UPDATE, {
        'contest_id': joined['contest_id'],
        'entry_id': joined['entry_id'],
    })
    return entry
