"""Bingo number calls and player claims."""
from flask import current_app

from arena.errors import Forbidden, InvalidTransition, NotFound, ValidationError
from arena.models import Wager
from arena.services import notify
from arena.services.games.base import as_int
from arena.services.games.bingo import MAX_NUMBER, winning_line
from arena.services.ledger import run_atomic
from arena.services.rounds import compare_and_swap, get_round


def _bingo_round(round_id):
    rnd = get_round(round_id)
    if rnd.game_type != 'bingo':
        raise ValidationError(f"Round {round_id} is not a bingo round")
    return rnd


def _call_number(round_id, number):
    rnd = _bingo_round(round_id)
    if rnd.status != 'open':
        raise InvalidTransition(f"Numbers can only be called while round {round_id} is open")
    number = as_int(number, 'number')
    if not 1 <= number <= MAX_NUMBER:
        raise ValidationError(f"Number must be between 1 and {MAX_NUMBER}")
    state = dict(rnd.state or {})
    called = list(state.get('called_numbers', []))
    if number in called:
        raise ValidationError(f"Number {number} has already been called")
    called.append(number)
    state['called_numbers'] = called
    return compare_and_swap(rnd, {'state': state}, 'open')


def call_number(round_id, number):
    rnd = run_atomic(_call_number, round_id, number)
    current_app.logger.info(f"[bingo-call] round={rnd.id} number={number} called={len(rnd.state['called_numbers'])}")
    notify.round_changed(rnd)
    return rnd


def _claim_bingo(user_id, wager_id):
    wager = Wager.query.filter_by(id=as_int(wager_id, 'wager_id')).first()
    if wager is None or wager.game_type != 'bingo':
        raise NotFound(f"Card {wager_id} not found")
    if wager.user_id != user_id:
        raise Forbidden('You can only claim your own card')
    if wager.status != 'pending':
        raise ValidationError(f"Card {wager.id} is no longer active")
    rnd = _bingo_round(wager.round_id)
    if rnd.status not in ('open', 'closed'):
        raise InvalidTransition(f"Round {rnd.id} is {rnd.status}")
    state = dict(rnd.state or {})
    line = winning_line(wager.selection['card'], state.get('called_numbers', []))
    if line is None:
        raise ValidationError('No completed line on this card yet')
    claims = list(state.get('claims', []))
    if wager.id not in claims:
        claims.append(wager.id)
        state['claims'] = claims
        compare_and_swap(rnd, {'state': state}, ('open', 'closed'))
    return rnd, line


def claim_bingo(user_id, wager_id):
    """Record a verified claim; the admin confirms it when settling."""
    rnd, line = run_atomic(_claim_bingo, user_id, wager_id)
    current_app.logger.info(f"[bingo-claim] round={rnd.id} user={user_id} card={wager_id} line={line}")
    notify.round_changed(rnd)
    return rnd, line
