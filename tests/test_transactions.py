from conftest import make_category, make_transaction


def test_created_transaction_is_retrievable_by_owner(client, alice):
    food = make_category(client, alice)
    created = make_transaction(client, alice, food['id'], 42.5, '2025-03-14', description='Courses')

    assert created['type'] == 'EXPENSE'
    assert created['amount'] == 42.5
    assert created['date'] == '2025-03-14T00:00:00'
    assert created['userId'] == 'alice-id'
    assert created['category']['name'] == 'Food'

    listed = client.get('/api/transactions', headers=alice).json()
    assert [t['id'] for t in listed] == [created['id']]


def test_transactions_are_scoped_to_their_owner(client, alice, bob):
    food = make_category(client, alice)
    created = make_transaction(client, alice, food['id'], 10, '2025-03-14')

    assert client.get('/api/transactions', headers=bob).json() == []

    update = client.put(f"/api/transactions/{created['id']}", json={
        'type': 'expense', 'amount': 99, 'categoryId': food['id'], 'date': '2025-03-14'
    }, headers=bob)
    assert update.status_code == 500
    assert update.json() == {'error': 'Internal Server Error'}

    assert client.delete(f"/api/transactions/{created['id']}", headers=bob).status_code == 500
    assert len(client.get('/api/transactions', headers=alice).json()) == 1


def test_cannot_use_another_users_category(client, alice, bob):
    food = make_category(client, alice)
    response = client.post('/api/transactions', json={
        'type': 'expense', 'amount': 5, 'categoryId': food['id'], 'date': '2025-03-14'
    }, headers=bob)
    assert response.status_code == 500


def test_amount_string_is_parsed_and_type_uppercased(client, alice):
    salary = make_category(client, alice, 'Salary', 'income')
    created = make_transaction(client, alice, salary['id'], '1500.75', '2025-03-01', type='Income')
    assert created['amount'] == 1500.75
    assert created['type'] == 'INCOME'


def test_invalid_bodies_return_generic_error(client, alice):
    food = make_category(client, alice)
    for body in (
        {'type': 'expense', 'amount': -3, 'categoryId': food['id'], 'date': '2025-03-14'},
        {'type': 'transfer', 'amount': 3, 'categoryId': food['id'], 'date': '2025-03-14'},
        {'type': 'expense', 'amount': 'abc', 'categoryId': food['id'], 'date': '2025-03-14'},
    ):
        response = client.post('/api/transactions', json=body, headers=alice)
        assert response.status_code == 500
        assert response.json() == {'error': 'Internal Server Error'}


def test_update_replaces_fields(client, alice):
    food = make_category(client, alice)
    salary = make_category(client, alice, 'Salary', 'income')
    created = make_transaction(client, alice, food['id'], 10, '2025-03-14', description='old')

    response = client.put(f"/api/transactions/{created['id']}", json={
        'type': 'income',
        'amount': 20,
        'categoryId': salary['id'],
        'description': 'new',
        'date': '2025-04-01T10:30:00Z',
    }, headers=alice)

    assert response.status_code == 200
    updated = response.json()
    assert updated['type'] == 'INCOME'
    assert updated['amount'] == 20
    assert updated['categoryId'] == salary['id']
    assert updated['description'] == 'new'
    assert updated['date'] == '2025-04-01T10:30:00'


def test_delete_transaction(client, alice):
    food = make_category(client, alice)
    created = make_transaction(client, alice, food['id'], 10, '2025-03-14')

    response = client.delete(f"/api/transactions/{created['id']}", headers=alice)
    assert response.json() == {'success': True}
    assert client.get('/api/transactions', headers=alice).json() == []
    # Une seconde suppression échoue
    assert client.delete(f"/api/transactions/{created['id']}", headers=alice).status_code == 500


def test_transactions_are_ordered_most_recent_first(client, alice):
    food = make_category(client, alice)
    make_transaction(client, alice, food['id'], 1, '2025-01-10')
    make_transaction(client, alice, food['id'], 2, '2025-03-10')
    make_transaction(client, alice, food['id'], 3, '2025-02-10')

    amounts = [t['amount'] for t in client.get('/api/transactions', headers=alice).json()]
    assert amounts == [2, 3, 1]


def test_history_filters(client, alice):
    food = make_category(client, alice, 'Food')
    salary = make_category(client, alice, 'Salary', 'income')
    make_transaction(client, alice, food['id'], 30, '2025-03-05', description='Boulangerie')
    make_transaction(client, alice, food['id'], 70, '2025-04-12', description='Supermarché')
    make_transaction(client, alice, salary['id'], 2000, '2025-03-28', type='income')
    make_transaction(client, alice, food['id'], 15, '2024-12-30')
    make_transaction(client, alice, food['id'], 45, '2025-03-31T15:00:00')

    def amounts(params):
        response = client.get('/api/transactions', params=params, headers=alice)
        assert response.status_code == 200
        return sorted(t['amount'] for t in response.json())

    assert amounts({'type': 'income'}) == [2000]
    assert amounts({'categoryId': food['id']}) == [15, 30, 45, 70]
    assert amounts({'search': 'boulang'}) == [30]
    assert amounts({'search': 'salary'}) == [2000]
    assert amounts({'month': 3, 'year': 2025}) == [30, 45, 2000]
    assert amounts({'year': 2024}) == [15]
    # La date de fin inclut toute la journée
    assert amounts({'startDate': '2025-03-01', 'endDate': '2025-03-31'}) == [30, 45, 2000]
    assert amounts({'startDate': '2025-03-01', 'endDate': '2025-03-31T12:00:00'}) == [30, 2000]


def test_requests_without_session_are_rejected(client, alice):
    response = client.get('/api/transactions')
    assert response.status_code == 401
    assert response.json() == {'error': 'Unauthorized'}

    response = client.get('/api/transactions', headers={'Authorization': 'Bearer unknown'})
    assert response.status_code == 401


def test_search_treats_wildcards_literally(client, alice):
    food = make_category(client, alice, 'Food')
    make_transaction(client, alice, food['id'], 10, '2025-03-05', description='Remise 10%')
    make_transaction(client, alice, food['id'], 20, '2025-03-06', description='Courses')
    make_transaction(client, alice, food['id'], 30, '2025-03-07', description='menu_enfant')

    def amounts(search):
        response = client.get('/api/transactions', params={'search': search}, headers=alice)
        return sorted(t['amount'] for t in response.json())

    assert amounts('%') == [10]
    assert amounts('_') == [30]
    assert amounts('10%') == [10]
