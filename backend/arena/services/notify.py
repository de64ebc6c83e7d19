"""Push committed state to Socket.IO subscribers. Read-only consumers."""
from arena import db, socketio
from arena.models import User


def round_changed(rnd) -> None:
    payload = rnd.to_dict()
    socketio.emit('round_update', payload, to=f"round:{rnd.id}", namespace='/ws')
    socketio.emit('round_update', payload, to=f"lobby:{rnd.game_type}", namespace='/ws')


def balances_changed(user_ids) -> None:
    for user_id in sorted(set(user_ids)):
        user = db.session.get(User, user_id)
        if user is None:
            continue
        socketio.emit(
            'balance_update',
            {'user_id': user.id, 'points': user.points, 'cash': user.cash},
            to=f"account:{user.id}",
            namespace='/ws',
        )
