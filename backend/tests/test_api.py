from conftest import auth


def test_health(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'versus' in res.get_json()['games']


def test_player_routes_require_identity(client, flask_app):
    res = client.get('/api/accounts/me')
    assert res.status_code == 401
    assert res.get_json()['code'] == 'unauthorized'


def test_admin_routes_require_admin(client, make_account):
    user = make_account()
    res = client.post('/api/admin/rounds', json={'game_type': 'versus'}, headers=auth(user))
    assert res.status_code == 403
    assert res.get_json()['code'] == 'forbidden'


def test_versus_flow_over_http(client, admin, make_account):
    alice, bob = make_account(points=500), make_account(points=500)

    res = client.post('/api/admin/rounds', json={
        'game_type': 'versus',
        'config': {'title': 'Final', 'team1_name': 'Red', 'team2_name': 'Blue'},
    }, headers=auth(admin))
    assert res.status_code == 201
    rnd = res.get_json()
    assert rnd['odds'] == {'team1': 2.0, 'team2': 2.0}
    assert rnd['settings']['team1_name'] == 'Red'

    res = client.post(f"/api/rounds/{rnd['id']}/bets", json={'selection': {'team': 1}, 'stake': 100},
                      headers=auth(alice))
    assert res.status_code == 201
    body = res.get_json()
    assert body['wager']['odds'] == 1.1
    assert body['balance'] == {'points': 400, 'cash': 0}
    assert body['round']['odds'] == {'team1': 1.1, 'team2': 10.0}

    res = client.post(f"/api/rounds/{rnd['id']}/bets", json={'selection': {'team': 2}, 'stake': 100},
                      headers=auth(bob))
    assert res.status_code == 201

    res = client.post(f"/api/rounds/{rnd['id']}/bets", json={'selection': {'team': 2}, 'stake': 10},
                      headers=auth(bob))
    assert res.status_code == 409
    assert res.get_json()['code'] == 'duplicate_wager'

    assert client.post(f"/api/admin/rounds/{rnd['id']}/close", headers=auth(admin)).status_code == 200

    res = client.post(f"/api/rounds/{rnd['id']}/bets", json={'selection': {'team': 1}, 'stake': 10},
                      headers=auth(bob))
    assert res.status_code == 409
    assert res.get_json()['code'] == 'market_closed'

    res = client.post(f"/api/admin/rounds/{rnd['id']}/settle", json={'outcome': {'winner': 2}},
                      headers=auth(admin))
    assert res.status_code == 200
    summary = res.get_json()
    assert summary['winners'] == 1
    assert summary['total_payout'] == 198
    assert summary['already_settled'] is False

    again = client.post(f"/api/admin/rounds/{rnd['id']}/settle", json={'outcome': {'winner': 1}},
                        headers=auth(admin)).get_json()
    assert again['already_settled'] is True
    assert again['total_payout'] == 198

    me = client.get('/api/accounts/me', headers=auth(bob)).get_json()
    assert (me['points'], me['cash']) == (400, 198)

    history = client.get('/api/accounts/me/transactions', headers=auth(bob)).get_json()
    assert [e['type'] for e in history][:2] == ['versus_win', 'versus_bet']

    wagers = client.get('/api/accounts/me/wagers', headers=auth(alice)).get_json()
    assert wagers[0]['status'] == 'lost'

    profit = client.get('/api/admin/profit', headers=auth(admin)).get_json()
    assert profit['by_game']['versus']['profit'] == 2


def test_validation_errors_are_json(client, admin, make_account):
    user = make_account(points=20)
    rnd = client.post('/api/admin/rounds', json={'game_type': 'lucky2'}, headers=auth(admin)).get_json()

    res = client.post(f"/api/rounds/{rnd['id']}/bets", json={'selection': {'numbers': [3, 3]}, 'stake': 10},
                      headers=auth(user))
    assert res.status_code == 400
    assert res.get_json()['code'] == 'validation_error'

    res = client.post(f"/api/rounds/{rnd['id']}/bets", json={'selection': {'numbers': [3, 4]}, 'stake': 60},
                      headers=auth(user))
    assert res.status_code == 400
    assert res.get_json()['code'] == 'validation_error'

    client.post(f"/api/admin/accounts/{user.id}/adjust", json={'currency': 'points', 'delta': -15},
                headers=auth(admin))
    res = client.post(f"/api/rounds/{rnd['id']}/bets", json={'selection': {'numbers': [3, 4]}, 'stake': 10},
                      headers=auth(user))
    assert res.status_code == 400
    assert res.get_json()['code'] == 'insufficient_funds'

    assert client.get('/api/rounds/999').status_code == 404


def test_reset_over_http(client, admin, make_account):
    players = [make_account(points=200) for _ in range(3)]
    rnd = client.post('/api/admin/rounds', json={'game_type': 'horse_race'}, headers=auth(admin)).get_json()
    for i, p in enumerate(players):
        res = client.post(f"/api/rounds/{rnd['id']}/bets", json={'selection': {'numbers': {str(i + 1): 50}}},
                          headers=auth(p))
        assert res.status_code == 201

    res = client.post(f"/api/admin/rounds/{rnd['id']}/reset", headers=auth(admin))
    assert res.status_code == 200
    body = res.get_json()
    assert body['round']['status'] == 'cancelled'
    assert len(body['refunds']) == 3
    for p in players:
        assert client.get('/api/accounts/me', headers=auth(p)).get_json()['points'] == 200


def test_bingo_over_http(client, admin, make_account):
    player = make_account()
    rnd = client.post('/api/admin/rounds', json={'game_type': 'bingo', 'config': {'jackpot': 400}},
                      headers=auth(admin)).get_json()
    card = client.post(f"/api/rounds/{rnd['id']}/bets", json={}, headers=auth(player)).get_json()['wager']
    numbers = [n for n in card['selection']['card'][:5]]
    for n in numbers:
        res = client.post(f"/api/admin/rounds/{rnd['id']}/numbers", json={'number': n}, headers=auth(admin))
        assert res.status_code == 200
    assert res.get_json()['called_numbers'] == numbers

    res = client.post(f"/api/rounds/{rnd['id']}/claims", json={'wager_id': card['id']}, headers=auth(player))
    assert res.status_code == 201
    assert res.get_json()['line'] == 'row-1'

    summary = client.post(f"/api/admin/rounds/{rnd['id']}/settle", json={}, headers=auth(admin)).get_json()
    assert summary['winners'] == 1
    assert client.get('/api/accounts/me', headers=auth(player)).get_json()['points'] == 1000 - 100 + 400


def test_rps_over_http(client, make_account):
    host, guest = make_account(), make_account()
    room = client.post('/api/rounds/rps', json={'stake': 40}, headers=auth(host))
    assert room.status_code == 201
    room_id = room.get_json()['id']
    assert client.post(f'/api/rounds/rps/{room_id}/join', headers=auth(guest)).get_json()['status'] == 'closed'
    client.post(f'/api/rounds/rps/{room_id}/choice', json={'choice': 'paper'}, headers=auth(host))
    res = client.post(f'/api/rounds/rps/{room_id}/choice', json={'choice': 'scissors'}, headers=auth(guest))
    body = res.get_json()
    assert body['round']['status'] == 'completed'
    assert body['settlement']['house_fee'] == 4
    assert client.get('/api/accounts/me', headers=auth(guest)).get_json()['points'] == 1000 - 40 + 76


def test_admin_account_tools(client, admin):
    res = client.post('/api/admin/accounts', json={'username': 'carol', 'points': 300}, headers=auth(admin))
    assert res.status_code == 201
    carol = res.get_json()
    res = client.post('/api/admin/accounts', json={'username': 'dave', 'referred_by': carol['referral_code']},
                      headers=auth(admin))
    dave = res.get_json()

    approved = client.post(f"/api/admin/accounts/{dave['id']}/approve", headers=auth(admin)).get_json()
    assert approved['account']['approved'] is True
    assert approved['referral_bonuses'] == [
        {'user_id': carol['id'], 'level': 1, 'amount': 100, 'currency': 'points'}
    ]
    res = client.post(f"/api/admin/accounts/{dave['id']}/approve", headers=auth(admin))
    assert res.status_code == 409

    audit = client.get(f"/api/admin/accounts/{carol['id']}/audit", headers=auth(admin)).get_json()
    assert audit['points'] == {'balance': 400, 'ledger': 400, 'ok': True}

    res = client.post(f"/api/admin/accounts/{carol['id']}/adjust", json={'currency': 'gold', 'delta': 5},
                      headers=auth(admin))
    assert res.status_code == 400


def test_non_object_payloads_are_rejected(client, admin, make_account):
    player = make_account()
    rnd = client.post('/api/admin/rounds', json={'game_type': 'lucky2'}, headers=auth(admin)).get_json()

    res = client.post(f"/api/rounds/{rnd['id']}/bets", json={'selection': [7, 45], 'stake': 10},
                      headers=auth(player))
    assert res.status_code == 400
    assert res.get_json()['code'] == 'validation_error'

    res = client.post(f"/api/admin/rounds/{rnd['id']}/settle", json={'outcome': [1]}, headers=auth(admin))
    assert res.status_code == 400
    assert res.get_json()['code'] == 'validation_error'
    assert client.get(f"/api/rounds/{rnd['id']}").get_json()['status'] == 'open'


def test_rps_room_refuses_generic_bet_route(client, make_account):
    host, guest = make_account(), make_account()
    room_id = client.post('/api/rounds/rps', json={'stake': 40}, headers=auth(host)).get_json()['id']

    res = client.post(f'/api/rounds/{room_id}/bets', json={'selection': {'seat': 'guest'}, 'stake': 40},
                      headers=auth(guest))
    assert res.status_code == 400
    assert res.get_json()['code'] == 'validation_error'
    assert client.get(f'/api/rounds/{room_id}').get_json()['status'] == 'open'
    assert client.get('/api/accounts/me', headers=auth(guest)).get_json()['points'] == 1000


def test_rps_rematch_over_http(client, make_account):
    host, guest = make_account(), make_account()
    room_id = client.post('/api/rounds/rps', json={'stake': 40}, headers=auth(host)).get_json()['id']
    client.post(f'/api/rounds/rps/{room_id}/join', headers=auth(guest))
    client.post(f'/api/rounds/rps/{room_id}/choice', json={'choice': 'rock'}, headers=auth(host))
    client.post(f'/api/rounds/rps/{room_id}/choice', json={'choice': 'rock'}, headers=auth(guest))

    res = client.post(f'/api/rounds/rps/{room_id}/rematch', json={'accept': 'yes'}, headers=auth(host))
    assert res.status_code == 400

    res = client.post(f'/api/rounds/rps/{room_id}/rematch', json={'accept': True}, headers=auth(host))
    assert res.status_code == 200
    body = res.get_json()
    assert body['rematch']['status'] == 'open'
    assert body['round']['rematch']['accepted'] == [host.id]

    res = client.post(f'/api/rounds/rps/{room_id}/rematch', json={'accept': False}, headers=auth(guest))
    assert res.status_code == 200
    assert res.get_json()['rematch']['status'] == 'cancelled'
    history = client.get('/api/accounts/me/transactions', headers=auth(host)).get_json()
    assert [e['type'] for e in history][:2] == ['rps_refund', 'rps_rematch_stake']


def test_withdrawal_and_loan_requests_over_http(client, admin, make_account):
    player = make_account(cash=300)

    res = client.post('/api/accounts/me/withdrawals', json={'amount': 120}, headers=auth(player))
    assert res.status_code == 201
    body = res.get_json()
    assert body['request']['status'] == 'pending'
    assert body['balance'] == {'points': 1000, 'cash': 180}
    withdrawal_id = body['request']['id']

    res = client.post('/api/accounts/me/loans', json={'amount': 5000}, headers=auth(player))
    assert res.status_code == 400
    res = client.post('/api/accounts/me/loans', json={'amount': 200}, headers=auth(player))
    assert res.status_code == 201
    loan_id = res.get_json()['id']

    mine = client.get('/api/accounts/me/requests', headers=auth(player)).get_json()
    assert [r['type'] for r in mine] == ['loan', 'withdrawal']

    res = client.post(f'/api/admin/requests/{loan_id}/approve', headers=auth(player))
    assert res.status_code == 403

    res = client.post(f'/api/admin/requests/{loan_id}/approve', headers=auth(admin))
    assert res.status_code == 200
    assert res.get_json()['entry']['type'] == 'loan_approved'
    res = client.post(f'/api/admin/requests/{withdrawal_id}/decline', headers=auth(admin))
    assert res.get_json()['entry']['type'] == 'withdrawal_declined'
    res = client.post(f'/api/admin/requests/{withdrawal_id}/approve', headers=auth(admin))
    assert res.status_code == 409

    pending = client.get('/api/admin/requests?status=pending', headers=auth(admin)).get_json()
    assert pending == []
    me = client.get('/api/accounts/me', headers=auth(player)).get_json()
    assert (me['points'], me['cash']) == (1200, 300)
