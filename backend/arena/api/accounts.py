from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from arena.api import json_body
from arena.services.account_requests import list_requests, request_loan, request_withdrawal
from arena.services.betting import wagers_for
from arena.services.ledger import account_history


accounts = Blueprint('accounts', __name__)


def _limit(default=50, ceiling=200):
    try:
        value = int(request.args.get('limit', default))
    except ValueError:
        value = default
    return max(1, min(value, ceiling))


@accounts.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify(current_user.to_dict())


@accounts.route('/me/transactions', methods=['GET'])
@login_required
def my_transactions():
    return jsonify([e.to_dict() for e in account_history(current_user.id, limit=_limit())])


@accounts.route('/me/wagers', methods=['GET'])
@login_required
def my_wagers():
    items = wagers_for(current_user.id, status=request.args.get('status'), limit=_limit(100, 500))
    return jsonify([w.to_dict() for w in items])


@accounts.route('/me/withdrawals', methods=['POST'])
@login_required
def withdraw():
    data = json_body()
    req = request_withdrawal(current_user.id, data.get('amount'))
    return jsonify({'request': req.to_dict(), 'balance': {'points': current_user.points, 'cash': current_user.cash}}), 201


@accounts.route('/me/loans', methods=['POST'])
@login_required
def borrow():
    data = json_body()
    return jsonify(request_loan(current_user.id, data.get('amount')).to_dict()), 201


@accounts.route('/me/requests', methods=['GET'])
@login_required
def my_requests():
    items = list_requests(user_id=current_user.id, status=request.args.get('status'), limit=_limit())
    return jsonify([r.to_dict() for r in items])
