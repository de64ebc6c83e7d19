"""Bingo cards and line checks.

A card is 25 numbers in row-major order. Column ``c`` draws 5 unique
numbers from ``15c+1 .. 15c+15`` and the centre cell is a free 0.
"""
import random

from arena.errors import DuplicateWager, NotFound, ValidationError
from .base import Classification, Game, LOST, as_int

SIZE = 5
CENTRE = 12
FREE = 0
MAX_NUMBER = 75

LINES = (
    [('row', r, [r * SIZE + c for c in range(SIZE)]) for r in range(SIZE)]
    + [('column', c, [r * SIZE + c for r in range(SIZE)]) for c in range(SIZE)]
    + [('diagonal', 0, [i * SIZE + i for i in range(SIZE)])]
    + [('diagonal', 1, [i * SIZE + (SIZE - 1 - i) for i in range(SIZE)])]
)


def generate_card(rng=random):
    columns = [rng.sample(range(c * 15 + 1, c * 15 + 16), SIZE) for c in range(SIZE)]
    card = [columns[c][r] for r in range(SIZE) for c in range(SIZE)]
    card[CENTRE] = FREE
    return card


def validate_card(card):
    if not isinstance(card, (list, tuple)) or len(card) != SIZE * SIZE:
        raise ValidationError('card must contain 25 numbers')
    card = [as_int(n, 'card') for n in card]
    if card[CENTRE] != FREE:
        raise ValidationError('centre cell must be the free space (0)')
    for c in range(SIZE):
        column = [card[r * SIZE + c] for r in range(SIZE) if r * SIZE + c != CENTRE]
        low, high = c * 15 + 1, c * 15 + 15
        if any(not low <= n <= high for n in column):
            raise ValidationError(f"column {c + 1} numbers must be between {low} and {high}")
        if len(set(column)) != len(column):
            raise ValidationError(f"column {c + 1} has duplicate numbers")
    return card


def winning_line(card, called):
    """Return the first completed line as ``'row-2'`` etc, or None."""
    marked = set(called) | {FREE}
    for kind, index, cells in LINES:
        if all(card[i] in marked for i in cells):
            return f"{kind}-{index + 1}"
    return None


class BingoSession(Game):
    """Buy cards, call numbers, verify a claimed line and pay the jackpot."""
    game_type = 'bingo'
    single_ticket = False
    settle_from = ('open', 'closed')

    @property
    def bet_entry(self):
        return 'bingo_buy_in'

    def default_settings(self, config):
        return {
            'buy_in': int(config.get('BINGO_BUY_IN', 100)),
            'max_cards': int(config.get('BINGO_MAX_CARDS', 3)),
            'jackpot': 0,
            'reward_currency': 'points',
        }

    def validate_settings(self, settings):
        for key in ('buy_in', 'max_cards'):
            settings[key] = as_int(settings[key], key)
            if settings[key] < 1:
                raise ValidationError(f"{key} must be at least 1")
        settings['jackpot'] = as_int(settings['jackpot'], 'jackpot')
        if settings['jackpot'] < 0:
            raise ValidationError('jackpot cannot be negative')
        if settings['reward_currency'] not in ('points', 'cash'):
            raise ValidationError("reward_currency must be 'points' or 'cash'")
        return settings

    def on_open(self, rnd, config):
        rnd.state = {'called_numbers': [], 'claims': []}

    def validate_selection(self, rnd, selection, stake):
        buy_in = int((rnd.settings or {}).get('buy_in', 100))
        if stake is not None and as_int(stake, 'stake') != buy_in:
            raise ValidationError(f"A card costs exactly {buy_in}")
        card = (selection or {}).get('card')
        card = validate_card(card) if card is not None else generate_card()
        return {'card': card}, buy_in

    def check_ticket_limit(self, rnd, user_id, existing, selection):
        limit = (rnd.settings or {}).get('max_cards', 3)
        if len(existing) >= limit:
            raise DuplicateWager(f"At most {limit} cards per player in round {rnd.id}")

    def validate_outcome(self, rnd, outcome):
        from arena.models import Wager

        if int((rnd.settings or {}).get('jackpot', 0)) < 1:
            raise ValidationError(f"Set a jackpot for round {rnd.id} before settling")
        state = rnd.state or {}
        wager_id = outcome.get('wager_id')
        if wager_id is None:
            claims = state.get('claims', [])
            if not claims:
                raise ValidationError('No bingo has been claimed in this round')
            wager_id = claims[0]
        wager_id = as_int(wager_id, 'wager_id')
        wager = Wager.query.filter_by(id=wager_id, round_id=rnd.id).first()
        if wager is None:
            raise NotFound(f"Card {wager_id} is not part of round {rnd.id}")
        if wager.status != 'pending':
            raise ValidationError(f"Card {wager_id} is no longer active")
        line = winning_line(wager.selection['card'], state.get('called_numbers', []))
        if line is None:
            raise ValidationError(f"Card {wager_id} does not have a completed line")
        return {'wager_id': wager_id, 'user_id': wager.user_id, 'line': line}

    def classify(self, rnd, wager, outcome):
        settings = rnd.settings or {}
        currency = settings.get('reward_currency', 'points')
        if wager.id != outcome['wager_id']:
            return Classification(None, LOST, currency)
        return Classification(
            'bingo', LOST, currency,
            fixed_amount=int(settings.get('jackpot', 0)),
            details={'line': outcome['line']},
        )
