EXAM = {
    'name': 'Quarterly Exam',
    'type': 'exam',
    'required_participant_fields': ['name', 'email'],
    'questions': [
        {'text': '2 + 2?', 'options': ['3', '4'], 'correct_option_id': 'B', 'duration': 20},
        {'text': 'Capital of France?', 'options': ['Paris', 'Rome'], 'correct_option_id': 'A'},
    ],
}


def _create(client, body=None):
    res = client.post('/api/sessions/create', json=body or EXAM)
    assert res.status_code == 201
    return res.get_json()


def _join(client, session_id, name):
    res = client.post('/api/sessions/join', json={'session_id': session_id, 'fields': {'name': name, 'email': f'{name}@example.com'}})
    assert res.status_code == 201
    return res.get_json()['participant']


def test_create_and_fetch_session(client):
    created = _create(client)
    assert created['status'] == 'draft'
    assert created['required_participant_fields'] == ['name', 'email']
    assert [o['id'] for o in created['questions'][0]['options']] == ['A', 'B']

    res = client.get(f"/api/sessions/{created['id']}")
    assert res.status_code == 200
    assert res.get_json()['question_count'] == 2

    listed = client.get('/api/sessions/?type=exam').get_json()
    assert [s['id'] for s in listed] == [created['id']]
    assert client.get('/api/sessions/?type=poll').get_json() == []


def test_participant_fields_catalogue(client):
    fields = client.get('/api/sessions/participant-fields').get_json()
    assert fields[0] == {'id': 'name', 'label': 'Participant Name', 'required': True}
    assert {f['id'] for f in fields} >= {'email', 'organization', 'mobile'}


def test_activating_one_session_deactivates_the_other(client):
    first = _create(client)
    second = _create(client, dict(EXAM, name='Second'))
    client.post(f"/api/sessions/{first['id']}/activate")
    assert client.get('/api/sessions/active').get_json()['session']['id'] == first['id']

    res = client.post(f"/api/sessions/{second['id']}/activate")
    assert res.get_json()['status'] == 'active'
    assert client.get(f"/api/sessions/{first['id']}").get_json()['status'] == 'inactive'
    assert client.get('/api/sessions/active').get_json()['session']['id'] == second['id']
    assert len(client.get('/api/sessions/?status=active').get_json()) == 1


def test_join_with_nothing_active(client):
    _create(client)
    assert client.get('/api/sessions/active').get_json() == {'session': None, 'state': 'nothing_to_join'}
    res = client.post('/api/sessions/join', json={'fields': {'name': 'Pat'}})
    assert res.status_code == 200
    assert res.get_json() == {'joined': False, 'state': 'nothing_to_join'}


def test_join_reports_missing_fields(client):
    created = _create(client)
    res = client.post('/api/sessions/join', json={'session_id': created['id'], 'fields': {'name': 'Pat'}})
    assert res.status_code == 400
    assert res.get_json()['missing_fields'] == ['email']


def test_full_exam_over_http(client):
    session = _create(client)
    sid = session['id']
    client.post(f'/api/sessions/{sid}/activate')
    ann = _join(client, sid, 'Ann')
    ben = _join(client, sid, 'Ben')

    started = client.post(f'/api/sessions/{sid}/start').get_json()
    assert started['status'] == 'in-progress'
    assert started['current_question_index'] == 0

    state = client.get(f'/api/sessions/{sid}/state').get_json()
    q1, q2 = state['session']['questions']
    assert 'correct_option_id' not in q1
    assert state['poll_interval'] == 1.0
    host_state = client.get(f'/api/sessions/{sid}/state?role=host').get_json()
    assert host_state['session']['questions'][0]['correct_option_id'] == 'B'

    res = client.post(f'/api/sessions/{sid}/responses', json={'question_id': q1['id'], 'participant_id': ann['id'], 'answer': 'B'})
    assert res.status_code == 201
    res = client.post(f'/api/sessions/{sid}/responses', json={'question_id': q1['id'], 'participant_id': ann['id'], 'answer': 'A'})
    assert res.status_code == 409
    res = client.post(f'/api/sessions/{sid}/responses', json={'question_id': q1['id'], 'participant_id': ben['id'], 'answer': 'Z'})
    assert res.status_code == 400
    client.post(f'/api/sessions/{sid}/responses', json={'question_id': q1['id'], 'participant_id': ben['id'], 'answer': 'A'})

    live = client.get(f'/api/sessions/{sid}/live').get_json()
    assert live['total_responses'] == 2
    assert [o['percentage'] for o in live['options']] == [50.0, 50.0]

    # Interim leaderboard while the exam runs
    assert client.get(f'/api/sessions/{sid}/results').get_json()['status'] == 'in-progress'

    moved = client.post(f'/api/sessions/{sid}/next', json={'expected_index': 0}).get_json()
    assert moved['current_question_index'] == 1
    stale = client.post(f'/api/sessions/{sid}/next', json={'expected_index': 0}).get_json()
    assert stale['current_question_index'] == 1

    client.post(f'/api/sessions/{sid}/responses', json={'question_id': q2['id'], 'participant_id': ben['id'], 'answer': 'A'})
    finished = client.post(f'/api/sessions/{sid}/next').get_json()
    assert finished['status'] == 'completed'

    results = client.get(f'/api/sessions/{sid}/results').get_json()
    board = [(row['participant']['name'], row['score']) for row in results['leaderboard']]
    assert board == [('Ann', 1), ('Ben', 1)]

    progress = client.get(f'/api/sessions/{sid}/progress').get_json()
    assert [(p['name'], p['answered_count']) for p in progress] == [('Ben', 2), ('Ann', 1)]

    report = client.get(f"/api/sessions/{sid}/participants/{ann['id']}/report").get_json()
    assert [a['is_correct'] for a in report['answers']] == [True, False]

    # Completed sessions reveal answers to everyone
    state = client.get(f'/api/sessions/{sid}/state').get_json()
    assert state['session']['questions'][0]['correct_option_id'] == 'B'


def test_start_rules(client):
    session = _create(client)
    sid = session['id']
    assert client.post(f'/api/sessions/{sid}/start').status_code == 400
    client.post(f'/api/sessions/{sid}/activate')
    assert client.post(f'/api/sessions/{sid}/start').status_code == 200
    # Starting again is harmless
    again = client.post(f'/api/sessions/{sid}/start')
    assert again.status_code == 200
    assert again.get_json()['current_question_index'] == 0
    res = client.post(f'/api/sessions/{sid}/questions', json={'text': 'Late?', 'options': ['x']})
    assert res.status_code == 400


def test_previous_and_complete(client):
    sid = _create(client)['id']
    client.post(f'/api/sessions/{sid}/activate')
    client.post(f'/api/sessions/{sid}/start')
    assert client.post(f'/api/sessions/{sid}/previous').get_json()['current_question_index'] == 0
    done = client.post(f'/api/sessions/{sid}/complete')
    assert done.status_code == 200
    assert done.get_json()['status'] == 'completed'
    assert client.post(f'/api/sessions/{sid}/activate').status_code == 400


def test_add_question_patch_and_delete(client):
    sid = _create(client, {'name': 'Poll', 'type': 'poll'})['id']
    res = client.post(f'/api/sessions/{sid}/questions', json={
        'text': 'Best day?',
        'options': [{'id': 'mon', 'text': 'Monday'}, {'id': 'fri', 'text': 'Friday'}],
    })
    assert res.status_code == 201
    assert [o['id'] for o in res.get_json()['options']] == ['mon', 'fri']

    patched = client.patch(f'/api/sessions/{sid}', json={'name': 'Weekly poll'}).get_json()
    assert patched['name'] == 'Weekly poll'
    assert client.patch(f'/api/sessions/{sid}', json={'required_participant_fields': ['shoe_size']}).status_code == 400

    assert client.delete(f'/api/sessions/{sid}').status_code == 200
    assert client.get(f'/api/sessions/{sid}').status_code == 404


def test_join_link(client):
    sid = _create(client)['id']
    body = client.get(f'/api/sessions/{sid}/join-link').get_json()
    assert body == {'session_id': sid, 'url': f'http://testserver/join?sessionId={sid}'}


def test_unknown_session_is_404(client):
    res = client.get('/api/sessions/999')
    assert res.status_code == 404
    assert 'error' in res.get_json()
    assert client.post('/api/sessions/999/activate').status_code == 404
    assert client.get('/api/sessions/999/state').status_code == 404


def test_start_runs_server_side_host_for_exams(flask_app, client, monkeypatch):
    import time

    import live_audience
    from live_audience.services.interaction import runner

    spawned = []
    monkeypatch.setattr(live_audience.socketio, 'start_background_task', lambda fn, *args: spawned.append((fn, args)))
    monkeypatch.setattr(live_audience.socketio, 'sleep', lambda seconds: None)
    flask_app.config['HOST_RUNNER_ENABLED'] = True

    sid = _create(client)['id']
    client.post(f'/api/sessions/{sid}/activate')
    client.post(f'/api/sessions/{sid}/start')
    host = runner.get_host_runner(sid)
    assert host is not None
    assert host.loop.running
    assert len(spawned) == 1

    # Nobody presses next; the first question's 20 second timer moves the exam on
    now = time.monotonic()
    host.tick(now)
    host.tick(now + 20)
    state = client.get(f'/api/sessions/{sid}/state').get_json()
    assert state['session']['current_question_index'] == 1

    client.post(f'/api/sessions/{sid}/complete')
    assert runner.get_host_runner(sid) is None
    assert not host.loop.running


def test_polls_get_no_server_side_host(flask_app, client, monkeypatch):
    import live_audience
    from live_audience.services.interaction import runner

    monkeypatch.setattr(live_audience.socketio, 'start_background_task', lambda fn, *args: None)
    flask_app.config['HOST_RUNNER_ENABLED'] = True
    sid = _create(client, dict(EXAM, type='poll'))['id']
    client.post(f'/api/sessions/{sid}/activate')
    client.post(f'/api/sessions/{sid}/start')
    assert runner.get_host_runner(sid) is None


def test_non_integer_ids_are_rejected(client):
    sid = _create(client)['id']
    client.post(f'/api/sessions/{sid}/activate')
    client.post(f'/api/sessions/{sid}/start')
    res = client.post(f'/api/sessions/{sid}/next', json={'expected_index': 'x'})
    assert res.status_code == 400
    assert 'expected_index' in res.get_json()['error']
    res = client.post(f'/api/sessions/{sid}/responses', json={'question_id': 'abc', 'participant_id': 1, 'answer': 'A'})
    assert res.status_code == 400
    res = client.post(f'/api/sessions/{sid}/responses', json={'question_id': 1, 'participant_id': 'me', 'answer': 'A'})
    assert res.status_code == 400
