from decimal import Decimal

from arena.errors import ValidationError
from .base import Classification, Game, LOST, as_int, as_number_list

LOW, HIGH = 1, 60


class Lucky2Draw(Game):
    """Pick two numbers; one match pays a multiple in points, two pay the cash jackpot."""
    game_type = 'lucky2'

    def default_settings(self, config):
        return {
            'min_bet': int(config.get('LUCKY2_MIN_BET', 10)),
            'max_bet': int(config.get('LUCKY2_MAX_BET', 50)),
            'prize_multiplier': int(config.get('LUCKY2_PRIZE_MULTIPLIER', 25)),
            'jackpot': 0,
        }

    def validate_settings(self, settings):
        settings = super().validate_settings(settings)
        settings['prize_multiplier'] = as_int(settings['prize_multiplier'], 'prize_multiplier')
        if settings['prize_multiplier'] < 1:
            raise ValidationError('prize_multiplier must be at least 1')
        settings['jackpot'] = as_int(settings['jackpot'], 'jackpot')
        if settings['jackpot'] < 0:
            raise ValidationError('jackpot cannot be negative')
        return settings

    def validate_selection(self, rnd, selection, stake):
        numbers = as_number_list((selection or {}).get('numbers'), 'numbers', 2, LOW, HIGH)
        return {'numbers': numbers}, self.check_stake(rnd, stake)

    def validate_outcome(self, rnd, outcome):
        from arena.models import Wager

        numbers = as_number_list(outcome.get('numbers'), 'winning numbers', 2, LOW, HIGH)
        if int((rnd.settings or {}).get('jackpot', 0)) < 1:
            drawn = set(numbers)
            for wager in Wager.query.filter_by(round_id=rnd.id, status='pending'):
                if set(wager.selection['numbers']) == drawn:
                    raise ValidationError(f"Round {rnd.id} has a two-number match; set a jackpot before settling")
        return {'numbers': numbers}

    def classify(self, rnd, wager, outcome):
        matched = sorted(set(wager.selection['numbers']) & set(outcome['numbers']))
        settings = rnd.settings or {}
        if len(matched) == 2:
            return Classification(
                'jackpot', LOST, 'cash',
                fixed_amount=int(settings.get('jackpot', 0)),
                entry_type='lucky2_jackpot',
                details={'matched_numbers': matched},
            )
        if len(matched) == 1:
            return Classification(
                'match_one', Decimal(int(settings.get('prize_multiplier', 25))), 'points',
                entry_type='lucky2_win',
                details={'matched_numbers': matched},
            )
        return Classification(None, LOST, 'points')
