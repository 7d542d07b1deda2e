import gc
import threading
from datetime import datetime, timedelta

import pytest

from fantasy import db
from fantasy.errors import NotFoundError, PreconditionError, ValidationError
from fantasy.models import Contest, TeamEntry, utcnow
from fantasy.services.contests import join as join_module
from fantasy.services.contests import join_contest
from fantasy.services.scoring.notify import CONTEST_ENTRY_UPDATE


@pytest.fixture()
def make_contest(flask_app):
    def _make(match, **kwargs):
        contest = Contest(match_id=match.id, title=kwargs.pop('title', 'Mega Contest'), **kwargs)
        db.session.add(contest)
        db.session.commit()
        return contest
    return _make


def _join_kind(**kwargs):
    with pytest.raises(PreconditionError) as excinfo:
        join_contest(**kwargs)
    return excinfo.value.kind


def test_join_copies_the_lineup(make_match, make_team, make_contest, notifier):
    match = make_match()
    team = make_team(match, 'alice')
    contest = make_contest(match)

    entry = join_contest(contest.id, viewer_name='alice', notifier=notifier)

    assert entry.team_id == team.id
    assert entry.viewer_name == 'alice'
    assert entry.players == team.players
    assert entry.captain == team.captain
    assert notifier.names() == [CONTEST_ENTRY_UPDATE]
    assert notifier.events[0][0] == match.id
    assert notifier.events[0][2]['contest_id'] == contest.id


def test_join_by_team_id(make_match, make_team, make_contest):
    match = make_match()
    team = make_team(match, 'alice')
    contest = make_contest(match)
    entry = join_contest(contest.id, team_id=team.id)
    assert entry.viewer_name == 'alice'


def test_join_requires_viewer_or_team(make_match, make_contest):
    contest = make_contest(make_match())
    with pytest.raises(ValidationError):
        join_contest(contest.id)


def test_join_without_a_team(make_match, make_contest):
    contest = make_contest(make_match())
    with pytest.raises(NotFoundError):
        join_contest(contest.id, viewer_name='nobody')


def test_join_unknown_contest(flask_app):
    with pytest.raises(NotFoundError):
        join_contest(12345, viewer_name='alice')


def test_join_someone_elses_team(make_match, make_team, make_contest):
    match = make_match()
    team = make_team(match, 'alice')
    contest = make_contest(match)
    with pytest.raises(ValidationError):
        join_contest(contest.id, viewer_name='mallory', team_id=team.id)


def test_closed_flag_rejects(make_match, make_team, make_contest):
    match = make_match()
    make_team(match, 'alice')
    contest = make_contest(match, closed=True)
    assert _join_kind(contest_id=contest.id, viewer_name='alice') == PreconditionError.CLOSED


def test_close_time_rejects(make_match, make_team, make_contest):
    match = make_match()
    make_team(match, 'alice')
    contest = make_contest(match, close_time=datetime(2025, 5, 1, 12, 0))
    assert _join_kind(contest_id=contest.id, viewer_name='alice',
                      now=datetime(2025, 5, 1, 12, 0)) == PreconditionError.CLOSED
    # Still open a second earlier
    join_contest(contest.id, viewer_name='alice', now=datetime(2025, 5, 1, 11, 59, 59))


def test_match_start_rejects(make_match, make_team, make_contest):
    match = make_match(start_time=utcnow() - timedelta(minutes=1))
    make_team(match, 'alice')
    contest = make_contest(match)
    assert _join_kind(contest_id=contest.id, viewer_name='alice') == PreconditionError.CLOSED


def test_team_from_another_match_rejects(make_match, make_team, make_contest):
    match = make_match(name='M1')
    other = make_match(name='M2')
    stray = make_team(other, 'alice')
    contest = make_contest(match)
    assert _join_kind(contest_id=contest.id, team_id=stray.id) == PreconditionError.MISMATCH


def test_second_join_of_same_team_is_duplicate(make_match, make_team, make_contest):
    match = make_match()
    make_team(match, 'alice')
    contest = make_contest(match, per_viewer_limit=5)
    join_contest(contest.id, viewer_name='alice')
    assert _join_kind(contest_id=contest.id, viewer_name='alice') == PreconditionError.DUPLICATE
    assert TeamEntry.query.filter_by(contest_id=contest.id).count() == 1


def test_per_viewer_limit(make_match, make_team, make_contest):
    match = make_match()
    old_team = make_team(match, 'alice-old')
    make_team(match, 'alice')
    contest = make_contest(match, per_viewer_limit=1)
    # An entry already held under the same viewer name
    db.session.add(TeamEntry(match_id=match.id, contest_id=contest.id, team_id=old_team.id,
                             viewer_name='alice', players=[], captain='', vice=''))
    db.session.commit()
    assert _join_kind(contest_id=contest.id, viewer_name='alice') == PreconditionError.LIMIT


def test_zero_limits_mean_unlimited(make_match, make_team, make_contest):
    match = make_match()
    contest = make_contest(match, max_entries=0, per_viewer_limit=0)
    for i in range(3):
        make_team(match, f'viewer{i}')
        join_contest(contest.id, viewer_name=f'viewer{i}')
    assert TeamEntry.query.filter_by(contest_id=contest.id).count() == 3


def test_full_contest_rejects(make_match, make_team, make_contest):
    match = make_match()
    make_team(match, 'alice')
    make_team(match, 'bob')
    contest = make_contest(match, max_entries=1)
    join_contest(contest.id, viewer_name='alice')
    assert _join_kind(contest_id=contest.id, viewer_name='bob') == PreconditionError.FULL


def _race(flask_app, calls):
    """Run join_contest calls on parallel threads; returns 'ok' or the error kind per call."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(idx, kwargs):
        with flask_app.app_context():
            barrier.wait()
            try:
                join_contest(**kwargs)
                results[idx] = 'ok'
            except PreconditionError as exc:
                results[idx] = exc.kind
            except Exception as exc:
                results[idx] = repr(exc)

    threads = [threading.Thread(target=worker, args=(i, kw)) for i, kw in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def test_concurrent_joins_of_one_team_admit_exactly_one(flask_app, make_match, make_team, make_contest):
    match = make_match()
    team_id = make_team(match, 'alice').id
    contest_id = make_contest(match, per_viewer_limit=10).id
    db.session.commit()

    results = _race(flask_app, [{'contest_id': contest_id, 'team_id': team_id} for _ in range(4)])

    assert sorted(results) == ['duplicate', 'duplicate', 'duplicate', 'ok']
    assert TeamEntry.query.filter_by(contest_id=contest_id).count() == 1


def test_concurrent_joins_never_overfill(flask_app, make_match, make_team, make_contest):
    match = make_match()
    team_ids = [make_team(match, f'viewer{i}').id for i in range(6)]
    contest_id = make_contest(match, max_entries=2).id
    db.session.commit()

    results = _race(flask_app, [{'contest_id': contest_id, 'team_id': tid} for tid in team_ids])

    assert results.count('ok') == 2
    assert results.count('full') == 4
    assert TeamEntry.query.filter_by(contest_id=contest_id).count() == 2


def test_concurrent_joins_for_the_last_slot(flask_app, make_match, make_team, make_contest):
    match = make_match()
    first = make_team(match, 'alice').id
    second = make_team(match, 'bob').id
    contest_id = make_contest(match, max_entries=1).id
    db.session.commit()

    results = _race(flask_app, [{'contest_id': contest_id, 'team_id': first},
                                {'contest_id': contest_id, 'team_id': second}])

    assert sorted(results) == ['full', 'ok']
    assert TeamEntry.query.filter_by(contest_id=contest_id).count() == 1


def test_contest_locks_are_released_after_joins(make_match, make_team, make_contest):
    match = make_match()
    make_team(match, 'alice')
    make_team(match, 'bob')
    contest = make_contest(match, max_entries=1)
    contest_id = contest.id

    join_contest(contest_id, viewer_name='alice')
    assert _join_kind(contest_id=contest_id, viewer_name='bob') == PreconditionError.FULL
    gc.collect()

    assert contest_id not in join_module._contest_locks
    assert len(join_module._contest_locks) == 0
