"""Admin trigger surface. Input is shape-checked here, rules live in the services."""
from flask import Blueprint, jsonify, request
from flask_login import current_user

from arena.api import admin_required, json_body
from arena.errors import ValidationError
from arena.services import ledger
from arena.services.account_requests import approve_request, decline_request, list_requests
from arena.services.bingo_calls import call_number
from arena.services.games.base import as_int
from arena.services.rounds import close_round, fund_round, open_round, reset_round, set_jackpot
from arena.services.settlement import settle_round


admin = Blueprint('admin', __name__)


@admin.route('/accounts', methods=['POST'])
@admin_required
def create_account():
    data = json_body()
    user = ledger.open_account(
        data.get('username'),
        is_admin=bool(data.get('is_admin')),
        points=as_int(data.get('points', 0), 'points'),
        cash=as_int(data.get('cash', 0), 'cash'),
        referred_by=data.get('referred_by'),
    )
    return jsonify(user.to_dict()), 201


@admin.route('/accounts/<int:user_id>/approve', methods=['POST'])
@admin_required
def approve(user_id):
    user, paid = ledger.approve_account(user_id)
    return jsonify({'account': user.to_dict(), 'referral_bonuses': paid})


@admin.route('/accounts/<int:user_id>/adjust', methods=['POST'])
@admin_required
def adjust(user_id):
    data = json_body()
    currency = data.get('currency')
    if currency not in ('points', 'cash'):
        raise ValidationError("currency must be 'points' or 'cash'")
    entry = ledger.adjust_balance(user_id, currency, as_int(data.get('delta'), 'delta'), actor_id=current_user.id)
    return jsonify({'entry': entry.to_dict(), 'account': ledger.get_account(user_id).to_dict()})


@admin.route('/accounts/<int:user_id>/audit', methods=['GET'])
@admin_required
def audit(user_id):
    return jsonify(ledger.reconcile_account(user_id))


@admin.route('/profit', methods=['GET'])
@admin_required
def profit():
    return jsonify(ledger.profit_summary())


@admin.route('/rounds', methods=['POST'])
@admin_required
def create_round():
    data = json_body()
    config = data.get('config') or {}
    if not isinstance(config, dict):
        raise ValidationError('config must be an object')
    rnd = open_round(data.get('game_type'), config)
    return jsonify(rnd.to_dict()), 201


@admin.route('/rounds/<int:round_id>/close', methods=['POST'])
@admin_required
def close(round_id):
    return jsonify(close_round(round_id).to_dict())


@admin.route('/rounds/<int:round_id>/settle', methods=['POST'])
@admin_required
def settle(round_id):
    data = json_body()
    summary = settle_round(round_id, data.get('outcome'))
    return jsonify(summary.to_dict())


@admin.route('/rounds/<int:round_id>/reset', methods=['POST'])
@admin_required
def reset(round_id):
    rnd, refunds = reset_round(round_id)
    return jsonify({'round': rnd.to_dict(), 'refunds': refunds})


@admin.route('/rounds/<int:round_id>/fund', methods=['POST'])
@admin_required
def fund(round_id):
    data = json_body()
    return jsonify(fund_round(round_id, as_int(data.get('amount'), 'amount')).to_dict())


@admin.route('/rounds/<int:round_id>/jackpot', methods=['POST'])
@admin_required
def jackpot(round_id):
    data = json_body()
    return jsonify(set_jackpot(round_id, as_int(data.get('amount'), 'amount')).to_dict())


@admin.route('/rounds/<int:round_id>/numbers', methods=['POST'])
@admin_required
def call(round_id):
    data = json_body()
    return jsonify(call_number(round_id, data.get('number')).to_dict())


@admin.route('/requests', methods=['GET'])
@admin_required
def requests_index():
    user_id = request.args.get('user_id')
    items = list_requests(
        user_id=as_int(user_id, 'user_id') if user_id else None,
        status=request.args.get('status'),
    )
    return jsonify([r.to_dict() for r in items])


@admin.route('/requests/<int:request_id>/approve', methods=['POST'])
@admin_required
def approve_account_request(request_id):
    req, entry = approve_request(request_id, actor_id=current_user.id)
    return jsonify({'request': req.to_dict(), 'entry': entry.to_dict() if entry else None})


@admin.route('/requests/<int:request_id>/decline', methods=['POST'])
@admin_required
def decline_account_request(request_id):
    req, entry = decline_request(request_id, actor_id=current_user.id)
    return jsonify({'request': req.to_dict(), 'entry': entry.to_dict() if entry else None})
