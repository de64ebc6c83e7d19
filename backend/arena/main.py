from flask import Blueprint, jsonify

from arena.services.games import GAMES

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'service': 'arena', 'status': 'ok', 'games': sorted(GAMES)})
