from arena.services.betting import place_bet
from arena.services.rounds import close_round, open_round


def _events(sio_client, name):
    return [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def test_socket_connect_and_join(sio_client):
    assert sio_client.is_connected('/ws')
    assert _events(sio_client, 'connected')

    sio_client.emit('join_round', {'round_id': 7}, namespace='/ws')
    joined = _events(sio_client, 'joined')
    assert joined[0]['args'][0] == {'room': 'round:7'}

    sio_client.emit('join_round', {'game_type': 'bingo'}, namespace='/ws')
    assert _events(sio_client, 'joined')[0]['args'][0] == {'room': 'lobby:bingo'}


def test_join_requires_a_target(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_round', {'game_type': 'poker'}, namespace='/ws')
    assert _events(sio_client, 'error')


def test_ping(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    pong = _events(sio_client, 'pong')
    assert pong[0]['args'][0]['echo'] == {'n': 1}


def test_round_and_balance_updates_are_pushed(sio_client, make_account):
    player = make_account()
    rnd = open_round('lucky2')
    sio_client.emit('join_round', {'round_id': rnd.id}, namespace='/ws')
    sio_client.emit('watch_account', {'user_id': player.id}, namespace='/ws')
    sio_client.get_received('/ws')

    place_bet(player.id, rnd.id, {'numbers': [4, 9]}, 20)
    received = sio_client.get_received('/ws')
    rounds = [pkt['args'][0] for pkt in received if pkt['name'] == 'round_update']
    balances = [pkt['args'][0] for pkt in received if pkt['name'] == 'balance_update']
    assert rounds[-1]['stakes_total'] == 20
    assert balances[-1] == {'user_id': player.id, 'points': 980, 'cash': 0}

    sio_client.emit('leave_round', {'round_id': rnd.id}, namespace='/ws')
    sio_client.get_received('/ws')
    close_round(rnd.id)
    assert not _events(sio_client, 'round_update')
