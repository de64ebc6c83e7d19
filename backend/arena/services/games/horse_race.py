from decimal import Decimal

from arena.errors import DuplicateWager, ValidationError
from .base import Classification, Game, LOST, as_int

LOW, HIGH = 1, 100

# Descending precedence: a ticket wins only its highest matching tier.
TIERS = (
    ('grand_prize', 1, 'cash'),
    ('first_runner_up', 2, 'cash'),
    ('second_runner_up', 5, 'cash'),
    ('consolation', 25, 'points'),
)

DEFAULT_REWARDS = {'grand_prize': 100, 'first_runner_up': 50, 'second_runner_up': 25, 'consolation': 10}


def _ticket_numbers(selection):
    return [item['number'] for item in selection.get('numbers', [])]


class HorseRace(Game):
    """Stake on up to ``max_numbers`` numbers; the drawn tiers pay multiples of the ticket total."""
    game_type = 'horse_race'
    single_ticket = False

    def default_settings(self, config):
        return {
            'min_bet': int(config.get('HORSE_MIN_BET', 10)),
            'max_bet': int(config.get('HORSE_MAX_BET', 1000)),
            'max_numbers': int(config.get('HORSE_MAX_NUMBERS', 10)),
            'rewards': dict(config.get('HORSE_REWARDS') or DEFAULT_REWARDS),
        }

    def validate_settings(self, settings):
        settings = super().validate_settings(settings)
        settings['max_numbers'] = as_int(settings['max_numbers'], 'max_numbers')
        if settings['max_numbers'] < 1:
            raise ValidationError('max_numbers must be at least 1')
        rewards = {}
        for tier, _count, _currency in TIERS:
            value = as_int((settings.get('rewards') or {}).get(tier), f"rewards.{tier}")
            if value < 1:
                raise ValidationError(f"rewards.{tier} must be at least 1")
            rewards[tier] = value
        settings['rewards'] = rewards
        return settings

    def validate_selection(self, rnd, selection, stake):
        raw = (selection or {}).get('numbers')
        if isinstance(raw, dict):
            pairs = list(raw.items())
        elif isinstance(raw, list):
            try:
                pairs = [(item['number'], item['amount']) for item in raw]
            except (KeyError, TypeError):
                raise ValidationError('numbers must be a list of {number, amount}')
        else:
            raise ValidationError('numbers must map each number to an amount')
        if not pairs:
            raise ValidationError('Select at least one number')

        settings = rnd.settings or {}
        max_numbers = settings.get('max_numbers', 10)
        if len(pairs) > max_numbers:
            raise ValidationError(f"At most {max_numbers} numbers per ticket")
        items = []
        seen = set()
        for number, amount in pairs:
            number = as_int(number, 'number')
            if not LOW <= number <= HIGH:
                raise ValidationError(f"Numbers must be between {LOW} and {HIGH}")
            if number in seen:
                raise ValidationError(f"Number {number} selected twice")
            seen.add(number)
            items.append({'number': number, 'amount': self.check_stake(rnd, amount)})
        items.sort(key=lambda item: item['number'])

        total = sum(item['amount'] for item in items)
        if stake is not None and as_int(stake, 'stake') != total:
            raise ValidationError('stake must equal the sum of the number amounts')
        return {'numbers': items}, total

    def check_ticket_limit(self, rnd, user_id, existing, selection):
        held = set()
        for wager in existing:
            held.update(_ticket_numbers(wager.selection))
        held.update(_ticket_numbers(selection))
        limit = (rnd.settings or {}).get('max_numbers', 10)
        if len(held) > limit:
            raise DuplicateWager(f"At most {limit} numbers per player in round {rnd.id}")

    def validate_outcome(self, rnd, outcome):
        outcome = outcome or {}
        declared = {}
        seen = set()
        for tier, count, _currency in TIERS:
            values = outcome.get(tier)
            if not isinstance(values, (list, tuple)) or len(values) != count:
                raise ValidationError(f"{tier} needs exactly {count} numbers")
            numbers = []
            for value in values:
                n = as_int(value, tier)
                if not LOW <= n <= HIGH:
                    raise ValidationError(f"Winning numbers must be between {LOW} and {HIGH}")
                if n in seen:
                    raise ValidationError(f"Winning number {n} is used more than once")
                seen.add(n)
                numbers.append(n)
            declared[tier] = numbers
        return declared

    def classify(self, rnd, wager, outcome):
        picked = set(_ticket_numbers(wager.selection))
        rewards = (rnd.settings or {}).get('rewards', {})
        for tier, _count, currency in TIERS:
            matched = sorted(picked & set(outcome[tier]))
            if matched:
                return Classification(
                    tier, Decimal(int(rewards[tier])), currency,
                    details={'winning_type': tier, 'matched_numbers': matched},
                )
        return Classification(None, LOST, 'points')
