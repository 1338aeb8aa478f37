def test_socket_connect_and_join(sio_client, competition):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    # Flush any initial events
    sio_client.get_received('/ws')

    sio_client.emit('join_team', {'team_id': competition.team}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'joined' and pkt['args'][0]['room'] == f"team:{competition.team}"
               for pkt in received)


def test_join_unknown_team_errors(sio_client, competition):
    sio_client.get_received('/ws')
    sio_client.emit('join_team', {'team_id': 12345}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'error' for pkt in received)


def test_socket_cannot_join_another_team(flask_app, competition):
    from lockdown import socketio
    spy = socketio.test_client(flask_app, namespace='/ws', headers={'X-Team-Id': str(competition.team)})
    spy.get_received('/ws')
    spy.emit('join_team', {'team_id': competition.other_team}, namespace='/ws')
    received = spy.get_received('/ws')
    assert [pkt['name'] for pkt in received] == ['error']
    spy.disconnect(namespace='/ws')


def test_timer_updates_reach_the_team_room(client, sio_client, competition, team_headers):
    sio_client.emit('join_team', {'team_id': competition.team}, namespace='/ws')
    sio_client.get_received('/ws')

    q1 = competition.level1[0]
    client.post(f'/timer/question/{q1}/start', headers=team_headers)
    events = sio_client.get_received('/ws')
    updates = [pkt for pkt in events if pkt['name'] == 'timer_update']
    assert updates
    assert updates[-1]['args'][0]['question_id'] == q1
    assert updates[-1]['args'][0]['status'] == 'IN_PROGRESS'


def test_ping_pong(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'n': 1} for pkt in received)
