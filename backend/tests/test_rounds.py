from datetime import datetime, timedelta, timezone

import pytest

from arena import db
from arena.errors import InvalidTransition, MarketClosed, NotFound, ValidationError
from arena.models import LedgerEntry, Round, User, Wager
from arena.services import rounds
from arena.services.betting import place_bet
from arena.services.settlement import settle_round


def test_open_round_merges_settings(flask_app):
    rnd = rounds.open_round('lucky2', {'prize_multiplier': 30, 'title': 'Friday draw'})
    assert rnd.status == 'open'
    assert rnd.title == 'Friday draw'
    assert rnd.settings == {'min_bet': 10, 'max_bet': 50, 'prize_multiplier': 30, 'jackpot': 0}


@pytest.mark.parametrize('game_type,config', [
    ('poker', {}),
    ('lucky2', {'prize_multiplier': 0}),
    ('lucky2', {'colour': 'red'}),
    ('versus', {'min_bet': 100, 'max_bet': 10}),
    ('versus', {'house_fee': 1.5}),
    ('bingo', {'reward_currency': 'gold'}),
    ('horse_race', {'rewards': {'grand_prize': 100}}),
    ('versus', {'closes_at': 'tomorrow'}),
    ('rps', {'host_id': 1, 'house_fee': 1.5}),
    ('rps', {'host_id': 1, 'house_fee': -0.1}),
    ('rps', {'host_id': 1, 'house_fee': 'half'}),
    ('rps', {'host_id': 1, 'min_stake': 0}),
    ('rps', {'host_id': 1, 'guest_id': 1}),
])
def test_open_round_validation(flask_app, game_type, config):
    with pytest.raises(ValidationError):
        rounds.open_round(game_type, config)
    assert Round.query.count() == 0


def test_transitions_are_monotonic(make_account):
    rnd = rounds.open_round('lucky2')
    rounds.close_round(rnd.id)
    with pytest.raises(InvalidTransition):
        rounds.close_round(rnd.id)
    settle_round(rnd.id, {'numbers': [1, 2]})
    with pytest.raises(InvalidTransition):
        rounds.reset_round(rnd.id)
    user = make_account()
    with pytest.raises(MarketClosed):
        place_bet(user.id, rnd.id, {'numbers': [1, 2]}, 10)
    assert db.session.get(Round, rnd.id).status == 'completed'


def test_missing_round(flask_app):
    with pytest.raises(NotFound):
        rounds.close_round(12345)


def test_reset_refunds_every_pending_wager(make_account):
    stakes = [50, 100, 30]
    players = [make_account(points=500) for _ in stakes]
    rnd = rounds.open_round('versus')
    wagers = [place_bet(p.id, rnd.id, {'team': 1}, s) for p, s in zip(players, stakes)]

    cancelled, refunds = rounds.reset_round(rnd.id)

    assert cancelled.status == 'cancelled'
    assert sorted(r['amount'] for r in refunds) == sorted(stakes)
    for player in players:
        assert db.session.get(User, player.id).points == 500
    entries = LedgerEntry.query.filter(LedgerEntry.type.like('%_refund')).all()
    assert len(entries) == 3
    assert sorted(e.amount for e in entries) == sorted(stakes)
    assert {e.type for e in entries} == {'versus_refund'}
    # Audit trail kept
    assert Wager.query.count() == 3
    assert all(db.session.get(Wager, w.id).status == 'refunded' for w in wagers)
    assert db.session.get(Round, rnd.id).stakes_total == 0


def test_reset_from_closed_and_twice(make_account):
    player = make_account()
    rnd = rounds.open_round('horse_race')
    place_bet(player.id, rnd.id, {'numbers': {'5': 10}})
    rounds.close_round(rnd.id)
    rounds.reset_round(rnd.id)
    with pytest.raises(InvalidTransition):
        rounds.reset_round(rnd.id)
    assert LedgerEntry.query.filter_by(type='horse_race_refund').count() == 1
    assert db.session.get(User, player.id).points == 1000


def test_fund_round_records_house_money(flask_app):
    rnd = rounds.open_round('versus')
    funded = rounds.fund_round(rnd.id, 500)
    assert funded.seed_total == 500
    assert funded.to_dict()['prize_pool'] == 500
    entry = LedgerEntry.query.filter_by(type='admin_versus_fund').one()
    assert entry.user_id is None and entry.amount == 500
    with pytest.raises(ValidationError):
        rounds.fund_round(rnd.id, 0)


def test_jackpot_updates_until_final(flask_app):
    rnd = rounds.open_round('lucky2')
    assert rounds.set_jackpot(rnd.id, 2500).settings['jackpot'] == 2500
    versus = rounds.open_round('versus')
    with pytest.raises(ValidationError):
        rounds.set_jackpot(versus.id, 10)
    rounds.close_round(rnd.id)
    settle_round(rnd.id, {'numbers': [1, 2]})
    with pytest.raises(InvalidTransition):
        rounds.set_jackpot(rnd.id, 10)


def test_deadline_timer_closes_round(flask_app):
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    past = (datetime.now(timezone.utc) - timedelta(seconds=5)).isoformat()
    rnd = rounds.open_round('versus', {'closes_at': past})
    assert rnd.status == 'closed'
    assert db.session.get(Round, rnd.id).closed_at is not None


def test_list_rounds_filters(flask_app):
    rounds.open_round('versus')
    lucky = rounds.open_round('lucky2')
    rounds.close_round(lucky.id)
    assert [r.game_type for r in rounds.list_rounds(status='closed')] == ['lucky2']
    assert len(rounds.list_rounds(game_type='versus')) == 1
