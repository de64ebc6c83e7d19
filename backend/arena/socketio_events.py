from flask_socketio import join_room, leave_room, emit
from arena import socketio
from arena.models import GAME_TYPES
import time


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _room_for(data):
    data = data or {}
    if data.get('round_id') is not None:
        try:
            return f"round:{int(data['round_id'])}"
        except (TypeError, ValueError):
            return None
    game_type = data.get('game_type')
    if game_type in GAME_TYPES:
        return f"lobby:{game_type}"
    return None


def handle_join_round(data):
    room = _room_for(data)
    if not room:
        emit('error', {'message': 'round_id or game_type is required'})
        return
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_round(data):
    room = _room_for(data)
    if not room:
        emit('error', {'message': 'round_id or game_type is required'})
        return
    leave_room(room)
    emit('left', {'room': room})


def handle_watch_account(data):
    try:
        user_id = int((data or {}).get('user_id'))
    except (TypeError, ValueError):
        emit('error', {'message': 'user_id is required'})
        return
    room = f"account:{user_id}"
    join_room(room)
    emit('joined', {'room': room})


def handle_ping(data=None):
    emit('pong', {'ts': time.time(), 'echo': data})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'join_round': handle_join_round,
        'leave_round': handle_leave_round,
        'watch_account': handle_watch_account,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
