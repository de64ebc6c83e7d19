from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from arena.api import json_body
from arena.errors import ValidationError
from arena.services.betting import place_bet, wagers_for
from arena.services.bingo_calls import claim_bingo
from arena.services.rounds import get_round, list_rounds
from arena.services.rps_rooms import cancel_room, create_room, join_room, respond_rematch, submit_choice


rounds = Blueprint('rounds', __name__)


@rounds.route('', methods=['GET'])
def index():
    items = list_rounds(game_type=request.args.get('game_type'), status=request.args.get('status'))
    return jsonify([r.to_dict() for r in items])


@rounds.route('/<int:round_id>', methods=['GET'])
def show(round_id):
    return jsonify(get_round(round_id).to_dict())


@rounds.route('/<int:round_id>/bets', methods=['POST'])
@login_required
def bet(round_id):
    data = json_body()
    wager = place_bet(current_user.id, round_id, data.get('selection') or {}, data.get('stake'))
    return jsonify({
        'wager': wager.to_dict(),
        'round': get_round(round_id).to_dict(),
        'balance': {'points': current_user.points, 'cash': current_user.cash},
    }), 201


@rounds.route('/<int:round_id>/wagers', methods=['GET'])
@login_required
def my_wagers(round_id):
    get_round(round_id)
    return jsonify([w.to_dict() for w in wagers_for(current_user.id, round_id=round_id)])


@rounds.route('/<int:round_id>/claims', methods=['POST'])
@login_required
def claim(round_id):
    data = json_body()
    rnd, line = claim_bingo(current_user.id, data.get('wager_id'))
    return jsonify({'round': rnd.to_dict(), 'line': line}), 201


@rounds.route('/rps', methods=['POST'])
@login_required
def rps_create():
    data = json_body()
    rnd = create_room(current_user.id, data.get('stake'))
    return jsonify(rnd.to_dict()), 201


@rounds.route('/rps/<int:round_id>/join', methods=['POST'])
@login_required
def rps_join(round_id):
    return jsonify(join_room(current_user.id, round_id).to_dict())


@rounds.route('/rps/<int:round_id>/choice', methods=['POST'])
@login_required
def rps_choice(round_id):
    data = json_body()
    rnd, summary = submit_choice(current_user.id, round_id, data.get('choice'))
    return jsonify({'round': rnd.to_dict(), 'settlement': summary.to_dict() if summary else None})


@rounds.route('/rps/<int:round_id>/cancel', methods=['POST'])
@login_required
def rps_cancel(round_id):
    rnd, refunds = cancel_room(current_user.id, round_id)
    return jsonify({'round': rnd.to_dict(), 'refunds': refunds})


@rounds.route('/rps/<int:round_id>/rematch', methods=['POST'])
@login_required
def rps_rematch(round_id):
    data = json_body()
    if not isinstance(data.get('accept'), bool):
        raise ValidationError('accept must be true or false')
    rnd, next_room = respond_rematch(current_user.id, round_id, data['accept'])
    return jsonify({'round': rnd.to_dict(), 'rematch': next_room.to_dict() if next_room is not None else None})
