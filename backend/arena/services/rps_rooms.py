"""Rock paper scissors rooms.

A room is an ``rps`` round: the host's stake is placed when the room opens,
the guest's stake closes it, and the second choice settles it in the same
transaction. A finished room can be replayed once both players accept a
rematch, each paying the stake again.
"""
from flask import current_app

from arena.errors import BetFailed, Forbidden, InvalidTransition, SettlementFailed, ValidationError
from arena.services import notify
from arena.services.betting import _place_bet
from arena.services.games.rps import CHOICES
from arena.services.ledger import run_atomic
from arena.services.rounds import _open_round, _reset_round, compare_and_swap, get_round
from arena.services.settlement import _settle_round


def _rps_room(round_id):
    rnd = get_round(round_id)
    if rnd.game_type != 'rps':
        raise ValidationError(f"Round {round_id} is not an rps room")
    return rnd


def _create_room(user_id, stake):
    rnd = _open_round('rps', {'stake': stake, 'host_id': user_id})
    _place_bet(user_id, rnd.id, {'seat': 'host'}, rnd.settings['stake'], direct=False)
    return rnd


def create_room(user_id, stake):
    rnd = run_atomic(_create_room, user_id, stake, failure=BetFailed)
    current_app.logger.info(f"[rps-create] room={rnd.id} host={user_id} stake={rnd.settings['stake']}")
    notify.round_changed(rnd)
    notify.balances_changed([user_id])
    return rnd


def _join_room(user_id, round_id):
    rnd = _rps_room(round_id)
    if (rnd.settings or {}).get('guest_id') is not None:
        raise ValidationError(f"Room {round_id} is a rematch; seats are taken by accepting it")
    _place_bet(user_id, rnd.id, {'seat': 'guest'}, None, direct=False)
    # Both seats taken: no further stakes, play begins
    return compare_and_swap(rnd, {'status': 'closed'}, 'open')


def join_room(user_id, round_id):
    rnd = run_atomic(_join_room, user_id, round_id, failure=BetFailed)
    current_app.logger.info(f"[rps-join] room={rnd.id} guest={user_id}")
    notify.round_changed(rnd)
    notify.balances_changed([user_id])
    return rnd


def _submit_choice(user_id, round_id, choice):
    rnd = _rps_room(round_id)
    if choice not in CHOICES:
        raise ValidationError(f"choice must be one of {', '.join(CHOICES)}")
    if rnd.status != 'closed':
        raise InvalidTransition(f"Room {round_id} is {rnd.status}, choices are taken once both players are seated")
    seated = {w.user_id for w in rnd.wagers.filter_by(status='pending')}
    if user_id not in seated:
        raise Forbidden(f"User {user_id} is not playing in room {round_id}")
    state = dict(rnd.state or {})
    choices = dict(state.get('choices', {}))
    if str(user_id) in choices:
        raise ValidationError('Choice already submitted')
    choices[str(user_id)] = choice
    state['choices'] = choices
    compare_and_swap(rnd, {'state': state}, 'closed')
    if len(choices) < 2:
        return rnd, None
    return rnd, _settle_round(rnd.id, {'choices': choices})


def submit_choice(user_id, round_id, choice):
    """Record a choice; the second one resolves the duel."""
    rnd, summary = run_atomic(_submit_choice, user_id, round_id, choice, failure=SettlementFailed)
    current_app.logger.info(f"[rps-choice] room={rnd.id} user={user_id} resolved={summary is not None}")
    notify.round_changed(get_round(round_id))
    if summary is not None:
        notify.balances_changed(r.user_id for r in summary.results)
    return get_round(round_id), summary


def _cancel_room(user_id, round_id):
    rnd = _rps_room(round_id)
    settings = rnd.settings or {}
    if user_id not in (settings.get('host_id'), settings.get('guest_id')):
        raise Forbidden('Only a player of this room can cancel it')
    if rnd.status != 'open':
        raise InvalidTransition(f"Room {round_id} is {rnd.status} and can no longer be cancelled")
    return _reset_round(round_id, allowed=('open',))


def cancel_room(user_id, round_id):
    """A waiting room is abandoned; the stakes already placed are refunded."""
    rnd, refunds = run_atomic(_cancel_room, user_id, round_id)
    current_app.logger.info(f"[rps-cancel] room={rnd.id} user={user_id} refunded={len(refunds)}")
    notify.round_changed(rnd)
    notify.balances_changed(r['user_id'] for r in refunds)
    return rnd, refunds


def _respond_rematch(user_id, round_id, accept):
    rnd = _rps_room(round_id)
    if rnd.status != 'completed':
        raise InvalidTransition(f"Room {round_id} is {rnd.status}, a rematch follows a finished duel")
    settings = rnd.settings or {}
    host_id = settings['host_id']
    players = {w.user_id for w in rnd.wagers}
    if user_id not in players:
        raise Forbidden(f"User {user_id} did not play in room {round_id}")
    guest_id = next(uid for uid in players if uid != host_id)

    state = dict(rnd.state or {})
    rematch = dict(state.get('rematch') or {'round_id': None, 'accepted': [], 'declined': False})
    if rematch['declined']:
        raise InvalidTransition(f"The rematch for room {round_id} was declined")
    accepted = list(rematch['accepted'])
    if user_id in accepted:
        raise ValidationError('You already accepted this rematch')
    next_room = get_round(rematch['round_id']) if rematch['round_id'] else None

    refunds = []
    if accept:
        if next_room is None:
            next_room = _open_round('rps', {
                'stake': settings['stake'],
                'min_stake': settings['min_stake'],
                'house_fee': settings['house_fee'],
                'host_id': host_id,
                'guest_id': guest_id,
                'rematch_of': rnd.id,
            })
        seat = 'host' if user_id == host_id else 'guest'
        _place_bet(user_id, next_room.id, {'seat': seat}, None, direct=False, entry_type='rps_rematch_stake')
        accepted.append(user_id)
        if len(accepted) == 2:
            compare_and_swap(next_room, {'status': 'closed'}, 'open')
    else:
        rematch['declined'] = True
        if next_room is not None and next_room.status == 'open':
            # The player who already paid gets the stake back
            _, refunds = _reset_round(next_room.id, allowed=('open',))

    rematch['accepted'] = accepted
    rematch['round_id'] = next_room.id if next_room is not None else None
    state['rematch'] = rematch
    compare_and_swap(rnd, {'state': state}, 'completed')
    return rnd, next_room, refunds


def respond_rematch(user_id, round_id, accept):
    """Accept (paying the stake again) or decline a rematch of a finished room.

    The first acceptance opens the follow-up room, the second closes it so
    choices can be made. Declining ends the offer and refunds a waiting stake.
    """
    rnd, next_room, refunds = run_atomic(_respond_rematch, user_id, round_id, bool(accept), failure=BetFailed)
    current_app.logger.info(
        f"[rps-rematch] room={rnd.id} user={user_id} accept={bool(accept)} "
        f"next={next_room.id if next_room is not None else None} refunded={len(refunds)}"
    )
    notify.round_changed(rnd)
    if next_room is not None:
        notify.round_changed(get_round(next_room.id))
    notify.balances_changed([user_id] + [r['user_id'] for r in refunds])
    return rnd, next_room
