"""Ledger error taxonomy.

Services raise these; the HTTP layer renders them as
``{'error': message, 'code': code}`` with the class status.
"""
from flask import jsonify


class ArenaError(Exception):
    """Base class for every ledger and settlement error."""
    status_code = 400
    code = 'error'

    def __init__(self, message=None, **details):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        self.details = details

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(ArenaError):
    """Invalid input."""
    code = 'validation_error'


class InsufficientFunds(ArenaError):
    """Insufficient balance."""
    code = 'insufficient_funds'


class MarketClosed(ArenaError):
    """Round is not open for betting."""
    status_code = 409
    code = 'market_closed'


class InvalidTransition(MarketClosed):
    """Operation not allowed in the current state."""
    code = 'invalid_transition'


class DuplicateWager(ArenaError):
    """Wager limit for this round reached."""
    status_code = 409
    code = 'duplicate_wager'


class NotFound(ArenaError):
    """Not found."""
    status_code = 404
    code = 'not_found'


class Forbidden(ArenaError):
    """Not allowed."""
    status_code = 403
    code = 'forbidden'


class ConcurrentModification(ArenaError):
    """Record changed by another writer."""
    status_code = 409
    code = 'concurrent_modification'


class AlreadySettled(ArenaError):
    """Round already settled."""
    status_code = 200
    code = 'already_settled'


class BetFailed(ArenaError):
    """Bet could not be committed, try again."""
    status_code = 503
    code = 'bet_failed'


class SettlementFailed(ArenaError):
    """Settlement could not be committed, round left unsettled."""
    status_code = 503
    code = 'settlement_failed'


def register_error_handlers(flask_app):
    @flask_app.errorhandler(ArenaError)
    def handle_arena_error(exc):
        if exc.status_code >= 500:
            flask_app.logger.error(f"[error] code={exc.code} message={exc.message}")
        return jsonify(exc.to_dict()), exc.status_code
