import time
from typing import List, Optional

from flask import current_app

from fantasy import db, socketio
from fantasy.models import Contest, utcnow
from fantasy.services.scoring.notify import CONTEST_CLOSED, MatchNotifier, NullNotifier


_sweeper_started = set()


def close_expired_contests(now=None, notifier: Optional[MatchNotifier] = None) -> List[int]:
    """Close and archive every open contest whose close time or match start has passed.

    Returns the ids of the contests closed by this call.
    """
    notifier = notifier or NullNotifier()
    now = now or utcnow()
    candidates = Contest.query.filter(
        Contest.archived.is_(False),
        Contest.closed.is_(False),
    ).all()
    closed = []
    for contest in candidates:
        if not contest.is_past_deadline(now):
            continue
        contest.closed = True
        contest.archived = True
        db.session.add(contest)
        closed.append((contest.id, contest.match_id))
    if closed:
        db.session.commit()
    for contest_id, match_id in closed:
        current_app.logger.info(f"[contest-close] contest={contest_id} match={match_id}")
        notifier.publish(match_id, CONTEST_CLOSED, {'contest_id': contest_id})
    return [contest_id for contest_id, _ in closed]


def start_contest_sweeper(app) -> None:
    """Run ``close_expired_contests`` every CONTEST_SWEEP_INTERVAL_SEC seconds.

    - No-ops in TESTING mode or when the interval is 0
    - Starts at most one sweeper per app
    """
    if app.config.get('TESTING'):
        return
    interval = int(app.config.get('CONTEST_SWEEP_INTERVAL_SEC', 60))
    if interval <= 0 or id(app) in _sweeper_started:
        return
    _sweeper_started.add(id(app))

    from fantasy.services.scoring.notify import SocketIONotifier

    def _worker(delay: int):
        app.logger.info(f"[sweeper-start] interval={delay}s")
        while True:
            time.sleep(delay)
            with app.app_context():
                try:
                    close_expired_contests(notifier=SocketIONotifier())
                except Exception:
                    db.session.rollback()
                    app.logger.exception("[sweeper-error] contest sweep failed")

    socketio.start_background_task(_worker, interval)
