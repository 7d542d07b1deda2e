from typing import Any, Dict, Optional

from fantasy import socketio

STATS_UPDATE = 'stats_update'
LEADERBOARD_UPDATE = 'leaderboard_update'
CONTEST_ENTRY_UPDATE = 'contest_entry_update'
CONTEST_CLOSED = 'contest_closed'
ROSTER_UPDATE = 'roster_update'
MATCH_DELETED = 'match_deleted'
CONTEST_DELETED = 'contest_deleted'


def match_room(match_id) -> str:
    return f"match:{match_id}"


class MatchNotifier:
    """Sink for match-scoped change events.

    Subclasses implement ``publish``; ``match_id=None`` means broadcast.
    """

    def publish(self, match_id, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError

    def statistics_changed(self, match_id, stats=None) -> None:
        payload = {'match_id': match_id}
        if stats is not None:
            payload['stats'] = stats
        self.publish(match_id, STATS_UPDATE, payload)

    def leaderboard_changed(self, match_id) -> None:
        self.publish(match_id, LEADERBOARD_UPDATE, {'match_id': match_id})


class NullNotifier(MatchNotifier):
    def publish(self, match_id, event, payload=None):
        return None


class SocketIONotifier(MatchNotifier):
    """Emits to the ``match:<id>`` room on the ``/ws`` namespace."""

    def __init__(self, namespace: str = '/ws'):
        self.namespace = namespace

    def publish(self, match_id, event, payload=None):
        if match_id is None:
            socketio.emit(event, payload or {}, namespace=self.namespace)
        else:
            socketio.emit(event, payload or {}, to=match_room(match_id), namespace=self.namespace)
