from conftest import login


def test_upsert_creates_then_updates_by_email(client, session_factory):
    headers = login(session_factory, 'carol-id', 'carol@example.com', register=False)

    created = client.post('/api/users', json={'id': 'carol-id', 'email': 'carol@example.com', 'name': 'Carol'},
                          headers=headers)
    assert created.status_code == 200
    assert created.json()['id'] == 'carol-id'
    assert created.json()['name'] == 'Carol'

    updated = client.post('/api/users', json={'id': 'ignored', 'email': 'carol@example.com', 'name': 'Caroline'},
                          headers=headers)
    assert updated.json()['id'] == 'carol-id'
    assert updated.json()['name'] == 'Caroline'


def test_id_and_name_defaults(client, session_factory):
    headers = login(session_factory, 'dave-id', 'dave@example.com', register=False)

    user = client.post('/api/users', json={'email': 'dave@example.com'}, headers=headers).json()
    assert user['id'] == 'dave-id'
    assert user['name'] == 'dave'


def test_categories_need_a_registered_user(client, session_factory):
    headers = login(session_factory, 'erin-id', 'erin@example.com', register=False)

    response = client.post('/api/categories', json={'name': 'Food', 'type': 'expense'}, headers=headers)
    assert response.status_code == 500


def test_invalid_email_rejected(client, alice):
    assert client.post('/api/users', json={'email': 'not-an-email'}, headers=alice).status_code == 500


def test_users_require_session(client):
    response = client.post('/api/users', json={'email': 'x@example.com'})
    assert response.status_code == 401
    assert response.json() == {'error': 'Unauthorized'}


def test_update_without_name_keeps_stored_name(client, session_factory):
    headers = login(session_factory, 'frank-id', 'frank@example.com', register=False)

    client.post('/api/users', json={'email': 'frank@example.com', 'name': 'Frank'}, headers=headers)
    user = client.post('/api/users', json={'email': 'frank@example.com'}, headers=headers).json()

    assert user['name'] == 'Frank'
