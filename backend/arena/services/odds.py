"""Pari-mutuel pricing for two-outcome markets."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

MIN_ODDS = 1.1
MAX_ODDS = 10.0
HOUSE_EDGE = 0.10
DEFAULT_ODDS = 2.0

_CENT = Decimal('0.01')


def _price(side_total: int, total: int, edge: Decimal, low: Decimal, high: Decimal) -> Decimal:
    # An unfunded side has unbounded raw odds and is pinned to the ceiling.
    if side_total <= 0:
        return high
    raw = Decimal(total) * (1 + edge) / Decimal(side_total)
    return min(max(raw, low), high).quantize(_CENT, rounding=ROUND_HALF_UP)


def calculate_odds(total1: int, total2: int, edge=HOUSE_EDGE, min_odds=MIN_ODDS,
                   max_odds=MAX_ODDS, default=DEFAULT_ODDS) -> Tuple[Decimal, Decimal]:
    """Return ``(odds1, odds2)`` for the given cumulative stakes.

    Implied probability ``s_i / total`` is inverted, marked up by the house
    edge, clamped to ``[min_odds, max_odds]`` and rounded to cents.
    """
    if total1 < 0 or total2 < 0:
        raise ValueError('Stake totals cannot be negative')
    low = Decimal(str(min_odds)).quantize(_CENT)
    high = Decimal(str(max_odds)).quantize(_CENT)
    if total1 == 0 and total2 == 0:
        fallback = Decimal(str(default)).quantize(_CENT)
        return fallback, fallback
    edge = Decimal(str(edge))
    total = total1 + total2
    return _price(total1, total, edge, low, high), _price(total2, total, edge, low, high)


def odds_from_config(config, total1: int, total2: int) -> Tuple[Decimal, Decimal]:
    return calculate_odds(
        total1,
        total2,
        edge=config.get('HOUSE_EDGE', HOUSE_EDGE),
        min_odds=config.get('MIN_ODDS', MIN_ODDS),
        max_odds=config.get('MAX_ODDS', MAX_ODDS),
        default=config.get('DEFAULT_ODDS', DEFAULT_ODDS),
    )
