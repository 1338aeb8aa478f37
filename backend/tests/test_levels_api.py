def _finish_level_one(client, competition, headers):
    for question in competition.level1:
        client.post(f'/timer/question/{question}/start', headers=headers)
        client.post(f'/timer/question/{question}/complete', json={'correct': True}, headers=headers)


def test_level_status_and_access(client, competition, team_headers):
    res = client.get('/levels/status', headers=team_headers)
    assert res.status_code == 200
    levels = res.get_json()['levels']
    assert [level['level_id'] for level in levels] == [1, 2]

    res = client.get('/levels/2/access', headers=team_headers)
    assert res.get_json() == {'level_id': 2, 'can_access': False}

    _finish_level_one(client, competition, team_headers)
    res = client.get('/levels/2/access', headers=team_headers)
    assert res.get_json()['can_access'] is True


def test_finish_level_route(client, competition, team_headers):
    q1 = competition.level1[0]
    client.post(f'/timer/question/{q1}/complete', json={'correct': True}, headers=team_headers)
    res = client.post('/levels/1/finish', headers=team_headers)
    assert res.status_code == 200
    assert res.get_json()['qualification_status'] == 'QUALIFIED'
    res = client.post('/levels/1/finish', headers=team_headers)
    assert res.status_code == 400
    assert res.get_json()['error_kind'] == 'AlreadyCompleted'


def test_messages_read_and_dismiss(client, competition, team_headers):
    _finish_level_one(client, competition, team_headers)
    res = client.get('/levels/messages?unread=true', headers=team_headers)
    messages = res.get_json()['messages']
    assert len(messages) == 1
    message_id = messages[0]['id']
    assert messages[0]['title'] == 'Congratulations! Level 1 Qualified!'

    res = client.post(f'/levels/messages/{message_id}/read', headers=team_headers)
    assert res.get_json()['is_read'] is True
    assert client.get('/levels/messages?unread=true', headers=team_headers).get_json()['messages'] == []

    client.post(f'/levels/messages/{message_id}/dismiss', headers=team_headers)
    assert client.get('/levels/messages', headers=team_headers).get_json()['messages'] == []


def test_messages_of_other_teams_are_hidden(client, competition, team_headers):
    _finish_level_one(client, competition, team_headers)
    message_id = client.get('/levels/messages', headers=team_headers).get_json()['messages'][0]['id']
    other = {'X-Team-Id': str(competition.other_team)}
    res = client.post(f'/levels/messages/{message_id}/read', headers=other)
    assert res.status_code == 404
