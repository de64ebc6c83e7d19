from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional

from arena.errors import DuplicateWager, ValidationError


@dataclass(frozen=True)
class Classification:
    """How one wager resolved against an outcome.

    ``tier`` is None for a losing ticket. The payout is ``fixed_amount`` when
    set, otherwise ``floor(stake * multiplier)``; ``refund`` returns the stake.
    """
    tier: Optional[str]
    multiplier: Decimal
    currency: str
    fixed_amount: Optional[int] = None
    refund: bool = False
    entry_type: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> str:
        if self.refund:
            return 'refunded'
        return 'won' if self.tier else 'lost'

    def payout(self, stake: int) -> int:
        if self.refund:
            return stake
        if not self.tier:
            return 0
        if self.fixed_amount is not None:
            return int(self.fixed_amount)
        return int((Decimal(stake) * Decimal(self.multiplier)).to_integral_value(rounding=ROUND_FLOOR))


LOST = Decimal(0)


def as_int(value, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text[:1] in ('-', '+') else text
        if digits.isdigit():
            try:
                return int(text)
            except ValueError:
                pass
    raise ValidationError(f"{name} must be an integer")


def as_mapping(value, name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{name} must be an object")
    return value


def as_number_list(values, name: str, count: int, low: int, high: int) -> List[int]:
    if not isinstance(values, (list, tuple)):
        raise ValidationError(f"{name} must be a list of {count} numbers")
    numbers = [as_int(v, name) for v in values]
    if len(numbers) != count:
        raise ValidationError(f"{name} must contain exactly {count} numbers")
    if len(set(numbers)) != len(numbers):
        raise ValidationError(f"{name} must not contain duplicates")
    for n in numbers:
        if not low <= n <= high:
            raise ValidationError(f"{name} must be between {low} and {high}")
    return numbers


class Game:
    """Settlement variant shared by every game type.

    Subclasses define selection and outcome validation plus ``classify``;
    the placement and settlement services own the atomic commit.
    """
    game_type = ''
    stake_currency = 'points'
    single_ticket = True
    # False where seats are only taken through a dedicated flow
    direct_bets = True
    settle_from = ('closed',)

    @property
    def bet_entry(self) -> str:
        return f"{self.game_type}_bet"

    @property
    def win_entry(self) -> str:
        return f"{self.game_type}_win"

    @property
    def refund_entry(self) -> str:
        return f"{self.game_type}_refund"

    def default_settings(self, config) -> Dict[str, Any]:
        return {}

    def build_settings(self, config, overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        settings = self.default_settings(config)
        for key, value in (overrides or {}).items():
            if key not in settings:
                raise ValidationError(f"Unknown setting '{key}' for {self.game_type}")
            settings[key] = value
        return self.validate_settings(settings)

    def validate_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        for key in ('min_bet', 'max_bet'):
            if key in settings:
                settings[key] = as_int(settings[key], key)
                if settings[key] < 1:
                    raise ValidationError(f"{key} must be at least 1")
        if 'min_bet' in settings and 'max_bet' in settings and settings['min_bet'] > settings['max_bet']:
            raise ValidationError('min_bet cannot exceed max_bet')
        return settings

    def on_open(self, rnd, config) -> None:
        pass

    def check_open(self, rnd) -> None:
        pass

    def check_stake(self, rnd, stake) -> int:
        stake = as_int(stake, 'stake')
        settings = rnd.settings or {}
        low, high = settings.get('min_bet', 1), settings.get('max_bet')
        if stake < low or (high is not None and stake > high):
            raise ValidationError(f"Stake must be between {low} and {high}", min_bet=low, max_bet=high)
        return stake

    def validate_selection(self, rnd, selection, stake):
        raise NotImplementedError

    def check_ticket_limit(self, rnd, user_id, existing, selection) -> None:
        if self.single_ticket and existing:
            raise DuplicateWager(f"User {user_id} already has an active wager on round {rnd.id}")

    def apply_stake(self, rnd, wager, config) -> Dict[str, Any]:
        """Round column updates for an accepted wager."""
        return {'stakes_total': rnd.stakes_total + wager.stake}

    def validate_outcome(self, rnd, outcome) -> Dict[str, Any]:
        raise NotImplementedError

    def classify(self, rnd, wager, outcome) -> Classification:
        raise NotImplementedError
