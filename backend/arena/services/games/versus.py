from datetime import datetime, timezone
from decimal import Decimal

from arena.errors import MarketClosed, ValidationError
from arena.services.odds import odds_from_config
from .base import Classification, Game, LOST, as_int

TEAMS = (1, 2)


def as_utc(value):
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class VersusMarket(Game):
    """Two-outcome pari-mutuel market with odds locked at placement."""
    game_type = 'versus'
    settle_from = ('open', 'closed')

    def default_settings(self, config):
        return {
            'min_bet': int(config.get('VERSUS_MIN_BET', 10)),
            'max_bet': int(config.get('VERSUS_MAX_BET', 100000)),
            'house_fee': float(config.get('VERSUS_HOUSE_FEE', 0.10)),
            'betting_enabled': True,
            'team1_name': 'Team 1',
            'team2_name': 'Team 2',
        }

    def validate_settings(self, settings):
        settings = super().validate_settings(settings)
        try:
            fee = float(settings['house_fee'])
        except (TypeError, ValueError):
            raise ValidationError('house_fee must be a number')
        if not 0 <= fee < 1:
            raise ValidationError('house_fee must be in [0, 1)')
        settings['house_fee'] = fee
        settings['betting_enabled'] = bool(settings['betting_enabled'])
        return settings

    def on_open(self, rnd, config):
        rnd.odds1, rnd.odds2 = odds_from_config(config, 0, 0)

    def check_open(self, rnd):
        if not (rnd.settings or {}).get('betting_enabled', True):
            raise MarketClosed(f"Betting is disabled for round {rnd.id}")
        deadline = as_utc(rnd.closes_at)
        if deadline is not None and datetime.now(timezone.utc) >= deadline:
            raise MarketClosed(f"Betting closed for round {rnd.id} at {deadline.isoformat()}")

    def validate_selection(self, rnd, selection, stake):
        team = as_int((selection or {}).get('team'), 'team')
        if team not in TEAMS:
            raise ValidationError('team must be 1 or 2')
        return {'team': team}, self.check_stake(rnd, stake)

    def apply_stake(self, rnd, wager, config):
        team1 = rnd.team1_total + (wager.stake if wager.selection['team'] == 1 else 0)
        team2 = rnd.team2_total + (wager.stake if wager.selection['team'] == 2 else 0)
        odds1, odds2 = odds_from_config(config, team1, team2)
        # The bettor gets the price that includes their own stake
        wager.odds = odds1 if wager.selection['team'] == 1 else odds2
        return {
            'stakes_total': rnd.stakes_total + wager.stake,
            'team1_total': team1,
            'team2_total': team2,
            'odds1': odds1,
            'odds2': odds2,
        }

    def validate_outcome(self, rnd, outcome):
        winner = as_int((outcome or {}).get('winner'), 'winner')
        if winner not in TEAMS:
            raise ValidationError('winner must be 1 or 2')
        return {'winner': winner}

    def classify(self, rnd, wager, outcome):
        if wager.selection.get('team') != outcome['winner']:
            return Classification(None, LOST, 'cash')
        fee = Decimal(str((rnd.settings or {}).get('house_fee', 0.10)))
        return Classification(
            'winner',
            Decimal(wager.odds) * (1 - fee),
            'cash',
            details={'odds': str(wager.odds)},
        )
