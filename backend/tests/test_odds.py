from decimal import Decimal

import pytest

from arena.services.odds import calculate_odds, odds_from_config


def test_empty_market_returns_default_odds():
    assert calculate_odds(0, 0) == (Decimal('2.00'), Decimal('2.00'))


def test_single_sided_market_pins_empty_side_to_ceiling():
    # 100 on team1 only: 1/1 * 1.1 = 1.10, team2 unfunded -> MAX_ODDS
    assert calculate_odds(100, 0) == (Decimal('1.10'), Decimal('10.00'))
    assert calculate_odds(0, 250) == (Decimal('10.00'), Decimal('1.10'))


def test_balanced_and_skewed_markets():
    assert calculate_odds(100, 100) == (Decimal('2.20'), Decimal('2.20'))
    assert calculate_odds(110, 90) == (Decimal('2.00'), Decimal('2.44'))
    assert calculate_odds(110, 190) == (Decimal('3.00'), Decimal('1.74'))


def test_odds_are_clamped():
    low, high = calculate_odds(1000, 1)
    assert low == Decimal('1.10')
    assert high == Decimal('10.00')


def test_recomputation_is_deterministic():
    assert calculate_odds(37, 91) == calculate_odds(37, 91)


def test_more_stake_on_a_side_never_raises_its_odds():
    other = 120
    previous = None
    for stake in range(1, 400, 7):
        mine, _ = calculate_odds(stake, other)
        if previous is not None:
            assert mine <= previous
        previous = mine


def test_negative_totals_rejected():
    with pytest.raises(ValueError):
        calculate_odds(-1, 5)


def test_config_overrides_edge_and_bounds():
    config = {'HOUSE_EDGE': 0, 'MIN_ODDS': 1.01, 'MAX_ODDS': 50, 'DEFAULT_ODDS': 1.9}
    assert odds_from_config(config, 0, 0) == (Decimal('1.90'), Decimal('1.90'))
    assert odds_from_config(config, 100, 100) == (Decimal('2.00'), Decimal('2.00'))
    assert odds_from_config(config, 100, 0)[1] == Decimal('50.00')
