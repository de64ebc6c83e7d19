from decimal import Decimal, ROUND_FLOOR

from arena.errors import DuplicateWager, Forbidden, MarketClosed, ValidationError
from .base import Classification, Game, LOST, as_int

CHOICES = ('rock', 'paper', 'scissors')
BEATS = {'rock': 'scissors', 'scissors': 'paper', 'paper': 'rock'}
SEATS = ('host', 'guest')


def duel_winner(first, second):
    """0 for a draw, 1 if ``first`` wins, 2 if ``second`` wins."""
    if first == second:
        return 0
    return 1 if BEATS[first] == second else 2


class RpsDuel(Game):
    """Two equal stakes, winner takes both minus the house fee; a draw refunds."""
    game_type = 'rps'
    single_ticket = True
    direct_bets = False

    @property
    def bet_entry(self):
        return 'rps_stake'

    def default_settings(self, config):
        return {
            'stake': int(config.get('RPS_MIN_STAKE', 10)),
            'min_stake': int(config.get('RPS_MIN_STAKE', 10)),
            'house_fee': float(config.get('RPS_HOUSE_FEE', 0.05)),
            'host_id': None,
            # Set on rematch rooms, where both players are known up front
            'guest_id': None,
            'rematch_of': None,
        }

    def validate_settings(self, settings):
        settings['min_stake'] = as_int(settings['min_stake'], 'min_stake')
        if settings['min_stake'] < 1:
            raise ValidationError('min_stake must be at least 1')
        settings['stake'] = as_int(settings['stake'], 'stake')
        if settings['stake'] < settings['min_stake']:
            raise ValidationError(f"Minimum stake is {settings['min_stake']}")
        try:
            fee = float(settings['house_fee'])
        except (TypeError, ValueError):
            raise ValidationError('house_fee must be a number')
        if not 0 <= fee < 1:
            raise ValidationError('house_fee must be in [0, 1)')
        settings['house_fee'] = fee
        if settings['host_id'] is None:
            raise ValidationError('host_id is required')
        settings['host_id'] = as_int(settings['host_id'], 'host_id')
        for key in ('guest_id', 'rematch_of'):
            if settings[key] is not None:
                settings[key] = as_int(settings[key], key)
        if settings['guest_id'] == settings['host_id']:
            raise ValidationError('host and guest must differ')
        return settings

    def on_open(self, rnd, config):
        rnd.state = {'choices': {}}

    def validate_selection(self, rnd, selection, stake):
        required = int((rnd.settings or {}).get('stake', 0))
        if stake is not None and as_int(stake, 'stake') != required:
            raise ValidationError(f"This room requires a stake of {required}")
        return dict(selection or {}), required

    def check_ticket_limit(self, rnd, user_id, existing, selection):
        if existing:
            raise DuplicateWager(f"User {user_id} is already seated in room {rnd.id}")
        seated = rnd.wagers.filter_by(status='pending').count()
        if seated >= len(SEATS):
            raise MarketClosed(f"Room {rnd.id} is full")
        settings = rnd.settings or {}
        host_id, guest_id = settings.get('host_id'), settings.get('guest_id')
        if guest_id is not None:
            # Rematch: each player takes their own seat in any order
            seats = {host_id: 'host', guest_id: 'guest'}
            if user_id not in seats:
                raise Forbidden(f"Room {rnd.id} is reserved for a rematch")
            expected = seats[user_id]
        else:
            expected = SEATS[seated]
        if selection.get('seat') != expected:
            raise ValidationError(f"Next seat in room {rnd.id} is '{expected}'")
        if expected == 'host' and user_id != host_id:
            raise ValidationError('Only the room creator can take the host seat')
        if expected == 'guest' and user_id == host_id:
            raise DuplicateWager('You cannot join your own room')

    def validate_outcome(self, rnd, outcome):
        choices = outcome.get('choices') or {}
        if not isinstance(choices, dict):
            raise ValidationError('choices must map each player to a choice')
        seated = {str(w.user_id) for w in rnd.wagers.filter_by(status='pending')}
        normalized = {str(uid): choice for uid, choice in choices.items()}
        if len(seated) != 2 or set(normalized) != seated:
            raise ValidationError('Both players must have chosen')
        for choice in normalized.values():
            if choice not in CHOICES:
                raise ValidationError(f"choice must be one of {', '.join(CHOICES)}")
        return {'choices': normalized}

    def classify(self, rnd, wager, outcome):
        choices = outcome['choices']
        mine = choices[str(wager.user_id)]
        theirs = next(c for uid, c in choices.items() if uid != str(wager.user_id))
        result = duel_winner(mine, theirs)
        if result == 0:
            return Classification('draw', LOST, 'points', refund=True, entry_type='rps_draw')
        if result == 2:
            return Classification(None, LOST, 'points')
        pot = Decimal(wager.stake * 2)
        fee = (pot * Decimal(str((rnd.settings or {}).get('house_fee', 0.05)))).to_integral_value(rounding=ROUND_FLOOR)
        return Classification(
            'win', LOST, 'points',
            fixed_amount=int(pot - fee),
            details={'choice': mine, 'opponent_choice': theirs, 'fee': int(fee)},
        )
