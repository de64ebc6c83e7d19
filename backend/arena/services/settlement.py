"""Settlement engine.

All pending wagers of a round are classified, paid and closed in one
transaction together with the house entry and the round's move to
``completed``. The final round write is a compare-and-swap on the status
the settlement started from, so a racing bet or a second settlement loses
and retries against fresh state (and then sees ``AlreadySettled``).
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import current_app

from arena.errors import AlreadySettled, ConcurrentModification, InvalidTransition, SettlementFailed
from arena.models import Wager
from arena.services import notify
from arena.services.games import get_game
from arena.services.games.base import as_mapping
from arena.services.ledger import credit, record_house_entry, run_atomic
from arena.services.rounds import compare_and_swap, get_round


@dataclass
class WagerResult:
    wager_id: int
    user_id: int
    stake: int
    status: str
    tier: Optional[str]
    payout: int
    currency: Optional[str]


@dataclass
class SettlementSummary:
    round_id: int
    game_type: str
    outcome: Optional[Dict[str, Any]]
    total_stakes: int = 0
    total_payout: int = 0
    total_refunds: int = 0
    house_fee: int = 0
    results: List[WagerResult] = field(default_factory=list)
    already_settled: bool = False

    @property
    def winners(self) -> List[WagerResult]:
        return [r for r in self.results if r.status == 'won']

    def to_dict(self):
        data = asdict(self)
        data['winners'] = len(self.winners)
        return data


def _close_wager(wager, status, payout, tier, currency, now) -> None:
    updated = Wager.query.filter(Wager.id == wager.id, Wager.status == 'pending').update(
        {'status': status, 'payout': payout, 'tier': tier, 'payout_currency': currency, 'settled_at': now},
        synchronize_session=False,
    )
    if not updated:
        raise ConcurrentModification(f"Wager {wager.id} was settled concurrently")


def _settle_round(round_id, outcome) -> SettlementSummary:
    rnd = get_round(round_id)
    if rnd.status == 'completed':
        raise AlreadySettled(f"Round {round_id} is already settled", round_id=round_id)
    game = get_game(rnd.game_type)
    if rnd.status not in game.settle_from:
        raise InvalidTransition(
            f"Round {round_id} is {rnd.status}; {rnd.game_type} settles from {', '.join(game.settle_from)}"
        )
    declared = game.validate_outcome(rnd, as_mapping(outcome, 'outcome'))

    summary = SettlementSummary(round_id=rnd.id, game_type=rnd.game_type, outcome=declared)
    now = datetime.now(timezone.utc)
    wagers = Wager.query.filter_by(round_id=rnd.id, status='pending').order_by(Wager.id).all()
    for wager in wagers:
        verdict = game.classify(rnd, wager, declared)
        amount = verdict.payout(wager.stake)
        currency = wager.currency if verdict.refund else verdict.currency
        if amount > 0:
            if verdict.refund:
                entry_type = verdict.entry_type or game.refund_entry
            else:
                entry_type = verdict.entry_type or game.win_entry
            credit(
                wager.user_id, currency, amount, entry_type,
                description=f"{rnd.game_type} round {rnd.id}: {verdict.tier or verdict.status}",
                round_id=rnd.id, wager_id=wager.id, game_type=rnd.game_type,
                details=dict(verdict.details, tier=verdict.tier) if verdict.details or verdict.tier else None,
            )
        _close_wager(wager, verdict.status, amount, verdict.tier, currency, now)

        summary.total_stakes += wager.stake
        if verdict.refund:
            summary.total_refunds += amount
        else:
            summary.total_payout += amount
        summary.results.append(
            WagerResult(wager.id, wager.user_id, wager.stake, verdict.status, verdict.tier, amount, currency)
        )

    summary.house_fee = summary.total_stakes - summary.total_payout - summary.total_refunds
    record_house_entry(
        'admin_profit', summary.house_fee,
        game_type=rnd.game_type, round_id=rnd.id,
        description=f"House result for {rnd.game_type} round {rnd.id}",
        details={
            'stakes': summary.total_stakes,
            'payouts': summary.total_payout,
            'refunds': summary.total_refunds,
        },
    )
    compare_and_swap(
        rnd,
        {
            'status': 'completed',
            'winning_outcome': declared,
            'house_fee': summary.house_fee,
            'total_payout': summary.total_payout,
            'settled_at': now,
            'closed_at': rnd.closed_at or now,
        },
        game.settle_from,
    )
    return summary


def summary_for(round_id) -> SettlementSummary:
    """Rebuild the summary of an already completed round from stored rows."""
    rnd = get_round(round_id)
    summary = SettlementSummary(
        round_id=rnd.id,
        game_type=rnd.game_type,
        outcome=rnd.winning_outcome,
        house_fee=rnd.house_fee or 0,
        total_payout=rnd.total_payout or 0,
        already_settled=True,
    )
    for wager in Wager.query.filter_by(round_id=rnd.id).order_by(Wager.id):
        if wager.status == 'pending':
            continue
        summary.total_stakes += wager.stake
        if wager.status == 'refunded':
            summary.total_refunds += wager.payout
        summary.results.append(
            WagerResult(wager.id, wager.user_id, wager.stake, wager.status, wager.tier,
                        wager.payout, wager.payout_currency)
        )
    return summary


def settle_round(round_id, outcome=None) -> SettlementSummary:
    """Resolve every pending wager of a round against ``outcome``.

    Safe to call again: a completed round returns its stored summary with
    ``already_settled`` set and pays nothing.
    """
    try:
        summary = run_atomic(_settle_round, round_id, outcome, failure=SettlementFailed)
    except AlreadySettled:
        current_app.logger.warning(f"[settle-skip] round={round_id} already settled")
        return summary_for(round_id)
    current_app.logger.info(
        f"[settle] round={summary.round_id} game={summary.game_type} wagers={len(summary.results)} "
        f"winners={len(summary.winners)} payout={summary.total_payout} refunds={summary.total_refunds} "
        f"house={summary.house_fee}"
    )
    notify.round_changed(get_round(round_id))
    notify.balances_changed(r.user_id for r in summary.results)
    return summary
