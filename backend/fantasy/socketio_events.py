from flask_socketio import join_room, leave_room, emit
from fantasy import socketio
from fantasy.services.scoring.notify import match_room


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _match_id(data):
    # Clients send either a bare id or {'match_id': id}
    if isinstance(data, dict):
        data = data.get('match_id')
    if data is None or str(data).strip() == '':
        return None
    return str(data).strip()


def handle_join_match(data):
    match_id = _match_id(data)
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = match_room(match_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_match(data):
    match_id = _match_id(data)
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = match_room(match_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('join_match', handle_join_match, namespace=ns)
        socketio.on_event('leave_match', handle_leave_match, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
