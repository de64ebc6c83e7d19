"""Account store and append-only transaction log.

Balances are only ever changed with a single conditional
``UPDATE ... SET points = points + :delta`` so concurrent writers cannot
lose each other's updates. Every change appends a ``LedgerEntry`` with the
post-balance snapshot.
"""
import time

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm.exc import StaleDataError

from arena import db
from arena.errors import (
    ConcurrentModification,
    InsufficientFunds,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from arena.models import CURRENCIES, LedgerEntry, User, generate_referral_code


def run_atomic(fn, *args, failure=None, **kwargs):
    """Run ``fn`` in one session transaction and commit it.

    Contention (``ConcurrentModification``/``StaleDataError``) rolls back and
    retries with exponential backoff; once the attempts are exhausted
    ``failure`` is raised instead. Any other exception rolls back and
    propagates unchanged.
    """
    attempts = max(1, int(current_app.config.get('LEDGER_RETRY_ATTEMPTS', 3)))
    backoff_ms = int(current_app.config.get('LEDGER_RETRY_BACKOFF_MS', 25))
    last_exc = None
    for attempt in range(1, attempts + 1):
        try:
            result = fn(*args, **kwargs)
            db.session.commit()
            return result
        except (ConcurrentModification, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            current_app.logger.warning(f"[retry] op={fn.__name__} attempt={attempt}/{attempts} reason={exc}")
            if attempt < attempts and backoff_ms > 0:
                time.sleep(backoff_ms * (2 ** (attempt - 1)) / 1000.0)
        except Exception:
            db.session.rollback()
            raise
    if failure is None:
        raise ConcurrentModification(f"{fn.__name__} gave up after {attempts} attempts")
    raise failure(f"{failure.__doc__} ({attempts} attempts: {last_exc})")


def _balance_column(currency):
    if currency not in CURRENCIES:
        raise ValidationError(f"Unknown currency '{currency}'")
    return getattr(User, currency)


def get_account(user_id) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound(f"Account {user_id} not found")
    return user


def _apply_delta(user_id: int, currency: str, delta: int) -> User:
    column = _balance_column(currency)
    query = User.query.filter(User.id == user_id)
    if delta < 0:
        query = query.filter(column >= -delta)
    updated = query.update({column: column + delta}, synchronize_session=False)
    user = get_account(user_id)
    if not updated:
        raise InsufficientFunds(
            f"Insufficient {currency}: need {-delta}",
            currency=currency,
            required=-delta,
        )
    db.session.refresh(user)
    return user


def post_entry(user_id, currency, amount, entry_type, *, description=None, round_id=None,
               wager_id=None, game_type=None, details=None) -> LedgerEntry:
    """Apply a signed ``amount`` to a balance and log it. Must run inside run_atomic."""
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationError('Amount must be an integer')
    if amount == 0:
        raise ValidationError('Amount must be non-zero')
    user = _apply_delta(user_id, currency, amount)
    entry = LedgerEntry(
        user_id=user_id,
        round_id=round_id,
        wager_id=wager_id,
        game_type=game_type,
        currency=currency,
        amount=amount,
        type=entry_type,
        description=description,
        balance_after=user.balance(currency),
        details=details,
    )
    db.session.add(entry)
    return entry


def debit(user_id, currency, amount, entry_type, **kwargs) -> LedgerEntry:
    if amount <= 0:
        raise ValidationError('Debit amount must be positive')
    return post_entry(user_id, currency, -amount, entry_type, **kwargs)


def credit(user_id, currency, amount, entry_type, **kwargs) -> LedgerEntry:
    if amount <= 0:
        raise ValidationError('Credit amount must be positive')
    return post_entry(user_id, currency, amount, entry_type, **kwargs)


def record_house_entry(entry_type, amount, *, currency='points', game_type=None, round_id=None,
                       description=None, details=None) -> LedgerEntry:
    entry = LedgerEntry(
        user_id=None,
        round_id=round_id,
        game_type=game_type,
        currency=currency,
        amount=int(amount),
        type=entry_type,
        description=description,
        details=details,
    )
    db.session.add(entry)
    return entry


def _open_account(username, is_admin=False, points=0, cash=0, referred_by=None) -> User:
    username = (username or '').strip()
    if not username:
        raise ValidationError('Username is required')
    if User.query.filter_by(username=username).first():
        raise ValidationError(f"Username '{username}' is taken")
    if points < 0 or cash < 0:
        raise ValidationError('Opening balances cannot be negative')
    if referred_by:
        referrer = User.query.filter_by(referral_code=referred_by).first()
        if referrer is None:
            raise ValidationError(f"Unknown referral code '{referred_by}'")
        User.query.filter(User.id == referrer.id).update(
            {User.referral_count: User.referral_count + 1}, synchronize_session=False
        )
    user = User(
        username=username,
        is_admin=bool(is_admin),
        referral_code=generate_referral_code(),
        referred_by=referred_by or None,
    )
    db.session.add(user)
    db.session.flush()
    for currency, amount in (('points', points), ('cash', cash)):
        if amount:
            credit(user.id, currency, amount, 'opening_balance', description='Opening balance')
    return user


def open_account(username, is_admin=False, points=0, cash=0, referred_by=None) -> User:
    user = run_atomic(_open_account, username, is_admin=is_admin, points=int(points),
                      cash=int(cash), referred_by=referred_by)
    current_app.logger.info(f"[account-open] user={user.id} username={user.username} admin={user.is_admin}")
    return user


def _adjust_balance(user_id, currency, delta, actor_id=None):
    _balance_column(currency)
    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        raise ValidationError('Delta must be a non-zero integer')
    entry = post_entry(
        user_id, currency, delta, f"admin_{currency}_update",
        description=f"Admin {'credit' if delta > 0 else 'debit'} of {abs(delta)} {currency}",
        details={'actor_id': actor_id},
    )
    return entry


def adjust_balance(user_id, currency, delta, actor_id=None) -> LedgerEntry:
    """Admin balance correction, applied as an increment."""
    entry = run_atomic(_adjust_balance, user_id, currency, delta, actor_id)
    current_app.logger.info(f"[admin-adjust] user={user_id} currency={currency} delta={delta} actor={actor_id}")
    return entry


def account_history(user_id, limit=50):
    get_account(user_id)
    return (
        LedgerEntry.query.filter_by(user_id=user_id)
        .order_by(LedgerEntry.id.desc())
        .limit(limit)
        .all()
    )


def reconcile_account(user_id):
    """Compare each balance with the signed sum of the account's log entries."""
    user = get_account(user_id)
    report = {}
    for currency in CURRENCIES:
        logged = (
            db.session.query(func.coalesce(func.sum(LedgerEntry.amount), 0))
            .filter(LedgerEntry.user_id == user_id, LedgerEntry.currency == currency)
            .scalar()
        )
        balance = user.balance(currency)
        report[currency] = {'balance': balance, 'ledger': int(logged), 'ok': balance == int(logged)}
    return report


def profit_summary():
    rows = (
        db.session.query(LedgerEntry.game_type, func.sum(LedgerEntry.amount), func.count(LedgerEntry.id))
        .filter(LedgerEntry.type == 'admin_profit', LedgerEntry.user_id.is_(None))
        .group_by(LedgerEntry.game_type)
        .all()
    )
    by_game = {game_type: {'profit': int(total or 0), 'rounds': count} for game_type, total, count in rows}
    return {'by_game': by_game, 'total': sum(v['profit'] for v in by_game.values())}


def _approve_account(user_id):
    user = get_account(user_id)
    updated = User.query.filter(User.id == user_id, User.approved.is_(False)).update(
        {User.approved: True}, synchronize_session=False
    )
    if not updated:
        raise InvalidTransition(f"Account {user_id} is already approved")

    ladder = current_app.config.get('REFERRAL_BONUSES') or []
    paid = []
    code = user.referred_by
    seen = {user.id}
    for level, (amount, currency) in enumerate(ladder, start=1):
        if not code:
            break
        referrer = User.query.filter_by(referral_code=code).first()
        if referrer is None or referrer.id in seen:
            break
        seen.add(referrer.id)
        credit(
            referrer.id, currency, int(amount), f"referral_bonus_level_{level}",
            description=f"Level {level} referral bonus for {user.username}",
            details={'referred_user_id': user.id, 'level': level},
        )
        paid.append({'user_id': referrer.id, 'level': level, 'amount': int(amount), 'currency': currency})
        code = referrer.referred_by
    db.session.refresh(user)
    return user, paid


def approve_account(user_id):
    """Approve an account once and pay the referral ladder above it."""
    user, paid = run_atomic(_approve_account, user_id)
    current_app.logger.info(f"[account-approve] user={user_id} referral_payouts={len(paid)}")
    return user, paid
