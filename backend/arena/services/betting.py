"""Bet placement.

One wager is one transaction: debit the stake, insert the wager, update the
round pool (and odds), append the ledger row. Any failure rolls all of it
back; round contention is retried and finally reported as ``BetFailed``.
"""
from flask import current_app

from arena import db
from arena.errors import BetFailed, MarketClosed, ValidationError
from arena.models import Wager
from arena.services import notify
from arena.services.games import get_game
from arena.services.games.base import as_mapping
from arena.services.ledger import debit, get_account, run_atomic
from arena.services.rounds import compare_and_swap, get_round


def _new_wager(rnd, user_id, game, selection, stake) -> Wager:
    return Wager(
        user_id=user_id,
        round_id=rnd.id,
        game_type=rnd.game_type,
        stake=stake,
        currency=game.stake_currency,
        selection=selection,
        status='pending',
        payout=0,
    )


def _place_bet(user_id, round_id, selection, stake=None, direct=True, entry_type=None) -> Wager:
    rnd = get_round(round_id)
    game = get_game(rnd.game_type)
    if direct and not game.direct_bets:
        raise ValidationError(f"{rnd.game_type} seats are taken through the room endpoints")
    if rnd.status != 'open':
        raise MarketClosed(f"Round {round_id} is {rnd.status}")
    game.check_open(rnd)
    get_account(user_id)

    selection, stake = game.validate_selection(rnd, as_mapping(selection, 'selection'), stake)
    existing = Wager.query.filter_by(round_id=rnd.id, user_id=user_id, status='pending').all()
    game.check_ticket_limit(rnd, user_id, existing, selection)

    entry = debit(
        user_id, game.stake_currency, stake, entry_type or game.bet_entry,
        description=f"{rnd.game_type} bet on round {rnd.id}",
        round_id=rnd.id, game_type=rnd.game_type,
    )
    wager = _new_wager(rnd, user_id, game, selection, stake)
    updates = game.apply_stake(rnd, wager, current_app.config)
    db.session.add(wager)
    db.session.flush()
    entry.wager_id = wager.id
    compare_and_swap(rnd, updates, 'open')
    return wager


def place_bet(user_id, round_id, selection, stake=None) -> Wager:
    wager = run_atomic(_place_bet, user_id, round_id, selection, stake, failure=BetFailed)
    current_app.logger.info(
        f"[bet-placed] round={wager.round_id} game={wager.game_type} user={user_id} wager={wager.id} "
        f"stake={wager.stake} odds={wager.odds}"
    )
    notify.round_changed(get_round(wager.round_id))
    notify.balances_changed([user_id])
    return wager


def wagers_for(user_id, round_id=None, status=None, limit=100):
    query = Wager.query.filter_by(user_id=user_id)
    if round_id is not None:
        query = query.filter_by(round_id=round_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Wager.id.desc()).limit(limit).all()
