"""Round state machine: open -> closed -> completed, or reset to cancelled.

Every round write is a compare-and-swap on ``(id, version, status)``; a
lost race surfaces as ``ConcurrentModification`` and is retried by
``run_atomic``.
"""
from datetime import datetime, timezone

from flask import current_app

from arena import db
from arena.errors import ConcurrentModification, InvalidTransition, NotFound, ValidationError
from arena.models import Round, Wager
from arena.services.games import get_game
from arena.services.ledger import credit, record_house_entry, run_atomic
from arena.services import notify

RESETTABLE = ('open', 'closed')


def get_round(round_id) -> Round:
    rnd = db.session.get(Round, round_id)
    if rnd is None:
        raise NotFound(f"Round {round_id} not found")
    return rnd


def list_rounds(game_type=None, status=None, limit=50):
    query = Round.query
    if game_type:
        query = query.filter_by(game_type=game_type)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Round.id.desc()).limit(limit).all()


def compare_and_swap(rnd: Round, values: dict, expected_status=None) -> Round:
    """Write ``values`` only if the round is unchanged since it was read."""
    expected = expected_status or (rnd.status,)
    if isinstance(expected, str):
        expected = (expected,)
    values = dict(values)
    values['version'] = rnd.version + 1
    updated = (
        Round.query.filter(Round.id == rnd.id, Round.version == rnd.version, Round.status.in_(expected))
        .update(values, synchronize_session=False)
    )
    if not updated:
        raise ConcurrentModification(f"Round {rnd.id} changed since version {rnd.version}")
    db.session.refresh(rnd)
    return rnd


def _parse_deadline(value):
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        deadline = value
    else:
        try:
            deadline = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError('closes_at must be an ISO-8601 timestamp')
    if deadline.tzinfo is not None:
        deadline = deadline.astimezone(timezone.utc).replace(tzinfo=None)
    return deadline


def _open_round(game_type, config=None) -> Round:
    config = dict(config or {})
    game = get_game(game_type)
    title = config.pop('title', None)
    closes_at = _parse_deadline(config.pop('closes_at', None))
    settings = game.build_settings(current_app.config, config)
    rnd = Round(
        game_type=game_type,
        status='open',
        title=title,
        settings=settings,
        state={},
        closes_at=closes_at,
        version=1,
    )
    game.on_open(rnd, current_app.config)
    db.session.add(rnd)
    db.session.flush()
    return rnd


def open_round(game_type, config=None) -> Round:
    rnd = run_atomic(_open_round, game_type, config)
    current_app.logger.info(f"[round-open] round={rnd.id} game={rnd.game_type} closes_at={rnd.closes_at}")
    if rnd.closes_at is not None:
        from arena.services.scheduler import schedule_round_close
        schedule_round_close(current_app._get_current_object(), rnd.id)
        db.session.refresh(rnd)
    notify.round_changed(rnd)
    return rnd


def _close_round(round_id) -> Round:
    rnd = get_round(round_id)
    if rnd.status != 'open':
        raise InvalidTransition(f"Round {round_id} is {rnd.status}, only open rounds can be closed")
    return compare_and_swap(rnd, {'status': 'closed', 'closed_at': datetime.now(timezone.utc)}, 'open')


def close_round(round_id) -> Round:
    rnd = run_atomic(_close_round, round_id)
    current_app.logger.info(f"[round-close] round={rnd.id} game={rnd.game_type} pool={rnd.stakes_total}")
    notify.round_changed(rnd)
    return rnd


def _reset_round(round_id, allowed=RESETTABLE):
    rnd = get_round(round_id)
    if rnd.status not in allowed:
        raise InvalidTransition(f"Round {round_id} is {rnd.status} and cannot be reset")
    game = get_game(rnd.game_type)
    refunds = []
    pending = Wager.query.filter_by(round_id=rnd.id, status='pending').order_by(Wager.id).all()
    now = datetime.now(timezone.utc)
    for wager in pending:
        updated = Wager.query.filter(Wager.id == wager.id, Wager.status == 'pending').update(
            {'status': 'refunded', 'payout': wager.stake, 'payout_currency': wager.currency,
             'tier': 'reset', 'settled_at': now},
            synchronize_session=False,
        )
        if not updated:
            raise ConcurrentModification(f"Wager {wager.id} was settled concurrently")
        credit(
            wager.user_id, wager.currency, wager.stake, game.refund_entry,
            description=f"Refund for {rnd.game_type} round {rnd.id}",
            round_id=rnd.id, wager_id=wager.id, game_type=rnd.game_type,
        )
        refunds.append({'wager_id': wager.id, 'user_id': wager.user_id, 'amount': wager.stake})
    compare_and_swap(
        rnd,
        {'status': 'cancelled', 'stakes_total': 0, 'team1_total': 0, 'team2_total': 0, 'closed_at': now},
        allowed,
    )
    return rnd, refunds


def reset_round(round_id):
    """Refund every pending wager and cancel the round. Nothing is deleted."""
    rnd, refunds = run_atomic(_reset_round, round_id)
    current_app.logger.info(
        f"[refund] round={rnd.id} game={rnd.game_type} refunded={len(refunds)} total={sum(r['amount'] for r in refunds)}"
    )
    notify.round_changed(rnd)
    notify.balances_changed(r['user_id'] for r in refunds)
    return rnd, refunds


def _fund_round(round_id, amount):
    rnd = get_round(round_id)
    if rnd.status not in RESETTABLE:
        raise InvalidTransition(f"Round {round_id} is {rnd.status} and cannot be funded")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError('amount must be a positive integer')
    compare_and_swap(rnd, {'seed_total': rnd.seed_total + amount})
    record_house_entry(
        f"admin_{rnd.game_type}_fund", amount, game_type=rnd.game_type, round_id=rnd.id,
        description=f"House funds added to {rnd.game_type} round {rnd.id}",
    )
    return rnd


def fund_round(round_id, amount) -> Round:
    rnd = run_atomic(_fund_round, round_id, amount)
    current_app.logger.info(f"[round-fund] round={rnd.id} amount={amount} pool={rnd.prize_pool}")
    notify.round_changed(rnd)
    return rnd


def _set_jackpot(round_id, amount):
    rnd = get_round(round_id)
    if 'jackpot' not in (rnd.settings or {}):
        raise ValidationError(f"{rnd.game_type} rounds have no jackpot")
    if rnd.status not in RESETTABLE:
        raise InvalidTransition(f"Round {round_id} is {rnd.status}, jackpot is final")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise ValidationError('jackpot must be a non-negative integer')
    settings = dict(rnd.settings)
    settings['jackpot'] = amount
    return compare_and_swap(rnd, {'settings': settings})


def set_jackpot(round_id, amount) -> Round:
    rnd = run_atomic(_set_jackpot, round_id, amount)
    current_app.logger.info(f"[jackpot] round={rnd.id} game={rnd.game_type} jackpot={amount}")
    notify.round_changed(rnd)
    return rnd
