"""Cash withdrawals and points loans.

A withdrawal holds the cash as soon as it is requested; approving it lets
the money leave, declining it puts the cash back. A loan moves nothing until
an admin approves it.
"""
from datetime import datetime, timezone

from flask import current_app

from arena import db
from arena.errors import InvalidTransition, NotFound, ValidationError
from arena.models import REQUEST_STATUSES, AccountRequest
from arena.services import notify
from arena.services.games.base import as_int
from arena.services.ledger import credit, debit, get_account, run_atomic


def _positive_amount(amount):
    amount = as_int(amount, 'amount')
    if amount < 1:
        raise ValidationError('amount must be a positive integer')
    return amount


def get_request(request_id) -> AccountRequest:
    req = db.session.get(AccountRequest, request_id)
    if req is None:
        raise NotFound(f"Request {request_id} not found")
    return req


def list_requests(user_id=None, status=None, limit=100):
    if status and status not in REQUEST_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(REQUEST_STATUSES)}")
    query = AccountRequest.query
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(AccountRequest.id.desc()).limit(limit).all()


def _request_withdrawal(user_id, amount):
    amount = _positive_amount(amount)
    get_account(user_id)
    entry = debit(user_id, 'cash', amount, 'withdrawal', description='Cash withdrawal request')
    req = AccountRequest(user_id=user_id, type='withdrawal', currency='cash', amount=amount, status='pending')
    db.session.add(req)
    db.session.flush()
    entry.details = {'request_id': req.id}
    return req


def request_withdrawal(user_id, amount) -> AccountRequest:
    req = run_atomic(_request_withdrawal, user_id, amount)
    current_app.logger.info(f"[withdrawal-request] request={req.id} user={user_id} amount={req.amount}")
    notify.balances_changed([user_id])
    return req


def _request_loan(user_id, amount):
    amount = _positive_amount(amount)
    ceiling = int(current_app.config.get('LOAN_MAX_AMOUNT', 1000))
    if amount > ceiling:
        raise ValidationError(f"Maximum loan amount is {ceiling}", max_amount=ceiling)
    get_account(user_id)
    req = AccountRequest(user_id=user_id, type='loan', currency='points', amount=amount, status='pending')
    db.session.add(req)
    db.session.flush()
    return req


def request_loan(user_id, amount) -> AccountRequest:
    req = run_atomic(_request_loan, user_id, amount)
    current_app.logger.info(f"[loan-request] request={req.id} user={user_id} amount={req.amount}")
    return req


def _decide_request(request_id, approve, actor_id=None):
    req = get_request(request_id)
    status = 'approved' if approve else 'declined'
    updated = AccountRequest.query.filter(
        AccountRequest.id == req.id, AccountRequest.status == 'pending'
    ).update(
        {'status': status, 'processed_at': datetime.now(timezone.utc), 'processed_by': actor_id},
        synchronize_session=False,
    )
    if not updated:
        raise InvalidTransition(f"Request {request_id} was already processed")

    entry = None
    if approve and req.type == 'loan':
        entry = credit(req.user_id, 'points', req.amount, 'loan_approved', description='Loan approved',
                       details={'request_id': req.id, 'actor_id': actor_id})
    elif not approve and req.type == 'withdrawal':
        entry = credit(req.user_id, 'cash', req.amount, 'withdrawal_declined',
                       description='Cash withdrawal declined - amount returned',
                       details={'request_id': req.id, 'actor_id': actor_id})
    db.session.refresh(req)
    return req, entry


def approve_request(request_id, actor_id=None):
    req, entry = run_atomic(_decide_request, request_id, True, actor_id)
    current_app.logger.info(f"[request-approve] request={req.id} type={req.type} user={req.user_id} amount={req.amount}")
    if entry is not None:
        notify.balances_changed([req.user_id])
    return req, entry


def decline_request(request_id, actor_id=None):
    req, entry = run_atomic(_decide_request, request_id, False, actor_id)
    current_app.logger.info(f"[request-decline] request={req.id} type={req.type} user={req.user_id} amount={req.amount}")
    if entry is not None:
        notify.balances_changed([req.user_id])
    return req, entry
