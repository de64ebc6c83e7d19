from arena import db
from flask_login import UserMixin
from datetime import datetime, timezone
import string
import random

CURRENCIES = ('points', 'cash')
GAME_TYPES = ('versus', 'lucky2', 'bingo', 'horse_race', 'rps')
ROUND_STATUSES = ('open', 'closed', 'completed', 'cancelled')
WAGER_STATUSES = ('pending', 'won', 'lost', 'refunded')
REQUEST_TYPES = ('withdrawal', 'loan')
REQUEST_STATUSES = ('pending', 'approved', 'declined')


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


def generate_referral_code(length=8):
    """Generate a unique referral code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not User.query.filter_by(referral_code=code).first():
            return code


class User(UserMixin, db.Model):
    """A ledger account. Balances change only through arena.services.ledger."""
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    points = db.Column(db.Integer, default=0, nullable=False)
    cash = db.Column(db.Integer, default=0, nullable=False)
    referral_code = db.Column(db.String(16), unique=True, index=True)
    referred_by = db.Column(db.String(16), nullable=True)  # referral code of the inviting account
    referral_count = db.Column(db.Integer, default=0, nullable=False)
    approved = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    __table_args__ = (
        db.CheckConstraint('points >= 0', name='ck_user_points_non_negative'),
        db.CheckConstraint('cash >= 0', name='ck_user_cash_non_negative'),
    )

    def balance(self, currency):
        return self.points if currency == 'points' else self.cash

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'is_admin': self.is_admin,
            'points': self.points,
            'cash': self.cash,
            'referral_code': self.referral_code,
            'referred_by': self.referred_by,
            'referral_count': self.referral_count,
            'approved': self.approved,
        }


class Round(db.Model):
    """One game instance: a versus match, a lottery draw, a bingo session, a race or an RPS room."""
    __tablename__ = 'round'
    id = db.Column(db.Integer, primary_key=True)
    game_type = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(32), default='open', nullable=False, index=True)  # open, closed, completed, cancelled
    title = db.Column(db.String(128), nullable=True)
    settings = db.Column(db.JSON, nullable=False, default=dict)
    # Cumulative stake of all non-refunded wagers
    stakes_total = db.Column(db.Integer, default=0, nullable=False)
    # Two-outcome markets
    team1_total = db.Column(db.Integer, default=0, nullable=False)
    team2_total = db.Column(db.Integer, default=0, nullable=False)
    odds1 = db.Column(db.Numeric(6, 2), nullable=True)
    odds2 = db.Column(db.Numeric(6, 2), nullable=True)
    # House money added to the displayed prize pool
    seed_total = db.Column(db.Integer, default=0, nullable=False)
    # Game specific progress: called bingo numbers, claims, rps choices
    state = db.Column(db.JSON, nullable=False, default=dict)
    winning_outcome = db.Column(db.JSON, nullable=True)
    house_fee = db.Column(db.Integer, nullable=True)
    total_payout = db.Column(db.Integer, nullable=True)
    closes_at = db.Column(db.DateTime, nullable=True)
    version = db.Column(db.Integer, default=1, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)
    closed_at = db.Column(db.DateTime, nullable=True)
    settled_at = db.Column(db.DateTime, nullable=True)

    wagers = db.relationship('Wager', back_populates='round', lazy='dynamic')

    @property
    def prize_pool(self):
        return self.stakes_total + self.seed_total

    def to_dict(self):
        data = {
            'id': self.id,
            'game_type': self.game_type,
            'status': self.status,
            'title': self.title,
            'settings': self.settings or {},
            'stakes_total': self.stakes_total,
            'prize_pool': self.prize_pool,
            'winning_outcome': self.winning_outcome,
            'house_fee': self.house_fee,
            'total_payout': self.total_payout,
            'closes_at': _iso(self.closes_at),
            'created_at': _iso(self.created_at),
            'settled_at': _iso(self.settled_at),
            'version': self.version,
        }
        if self.game_type == 'versus':
            data['team1_total'] = self.team1_total
            data['team2_total'] = self.team2_total
            data['odds'] = {
                'team1': float(self.odds1) if self.odds1 is not None else None,
                'team2': float(self.odds2) if self.odds2 is not None else None,
            }
        if self.game_type == 'bingo':
            data['called_numbers'] = list((self.state or {}).get('called_numbers', []))
            data['claims'] = list((self.state or {}).get('claims', []))
        if self.game_type == 'rps':
            # Choices stay hidden until the duel resolves
            choices = (self.state or {}).get('choices', {})
            data['players_ready'] = sorted(int(uid) for uid in choices)
            data['rematch'] = (self.state or {}).get('rematch')
        return data


class Wager(db.Model):
    """A single ticket. Only status, payout, tier, payout_currency and settled_at change after insert."""
    __tablename__ = 'wager'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    game_type = db.Column(db.String(32), nullable=False)
    stake = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(16), default='points', nullable=False)
    selection = db.Column(db.JSON, nullable=False, default=dict)
    odds = db.Column(db.Numeric(6, 2), nullable=True)  # locked at placement for two-outcome markets
    status = db.Column(db.String(16), default='pending', nullable=False, index=True)
    payout = db.Column(db.Integer, default=0, nullable=False)
    payout_currency = db.Column(db.String(16), nullable=True)
    tier = db.Column(db.String(32), nullable=True)
    created_at = db.Column(db.DateTime, default=_utcnow)
    settled_at = db.Column(db.DateTime, nullable=True)

    round = db.relationship('Round', back_populates='wagers')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'round_id': self.round_id,
            'game_type': self.game_type,
            'stake': self.stake,
            'currency': self.currency,
            'selection': self.selection,
            'odds': float(self.odds) if self.odds is not None else None,
            'status': self.status,
            'payout': self.payout,
            'payout_currency': self.payout_currency,
            'tier': self.tier,
            'created_at': _iso(self.created_at),
            'settled_at': _iso(self.settled_at),
        }


class LedgerEntry(db.Model):
    """Append-only audit row. user_id is NULL for house entries."""
    __tablename__ = 'ledger_entry'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=True, index=True)
    wager_id = db.Column(db.Integer, db.ForeignKey('wager.id'), nullable=True)
    game_type = db.Column(db.String(32), nullable=True, index=True)
    currency = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Integer, nullable=False)  # signed
    type = db.Column(db.String(64), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)
    balance_after = db.Column(db.Integer, nullable=True)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'round_id': self.round_id,
            'wager_id': self.wager_id,
            'game_type': self.game_type,
            'currency': self.currency,
            'amount': self.amount,
            'type': self.type,
            'description': self.description,
            'balance_after': self.balance_after,
            'details': self.details,
            'created_at': _iso(self.created_at),
        }


class AccountRequest(db.Model):
    """A player's cash withdrawal or points loan awaiting an admin decision."""
    __tablename__ = 'account_request'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)  # withdrawal, loan
    currency = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), default='pending', nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=_utcnow)
    processed_at = db.Column(db.DateTime, nullable=True)
    processed_by = db.Column(db.Integer, nullable=True)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'currency': self.currency,
            'amount': self.amount,
            'status': self.status,
            'created_at': _iso(self.created_at),
            'processed_at': _iso(self.processed_at),
            'processed_by': self.processed_by,
        }
