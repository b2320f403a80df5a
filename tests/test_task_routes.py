def create(client, **fields):
    body = {'title': 'File taxes', 'domain': 'Finances'}
    body.update(fields)
    return client.post('/api/tasks', json=body)


def titles(client, query=''):
    resp = client.get(f'/api/tasks{query}')
    assert resp.status_code == 200
    return [t['title'] for t in resp.get_json()['tasks']]


def test_create_applies_defaults(client):
    resp = create(client)
    assert resp.status_code == 201
    task = resp.get_json()['task']
    assert task['priority'] == 'Medium'
    assert task['status'] == 'Todo'
    assert task['deadline'] is None


def test_create_validates_input(client):
    assert create(client, title='  ').status_code == 400
    assert create(client, domain='Hobbies').get_json()['field'] == 'domain'
    assert create(client, priority='Urgent').status_code == 400
    assert create(client, deadline='next tuesday').get_json()['field'] == 'deadline'


def test_update_toggle_and_delete(client):
    task = create(client, deadline='2024-04-15T12:00:00Z').get_json()['task']
    url = f"/api/tasks/{task['id']}"

    updated = client.put(url, json={'priority': 'High', 'deadline': None}).get_json()['task']
    assert updated['priority'] == 'High'
    assert updated['deadline'] is None
    assert updated['title'] == 'File taxes'

    assert client.patch(f'{url}/status').get_json()['task']['status'] == 'Done'
    assert client.patch(f'{url}/status').get_json()['task']['status'] == 'Todo'

    assert client.delete(url).status_code == 200
    assert client.get(url).status_code == 404


def test_time_filters(client):
    # The test clock reads 2024-03-14.
    create(client, title='Today', deadline='2024-03-14T17:00:00Z')
    create(client, title='Tomorrow', deadline='2024-03-15T09:00:00Z')
    create(client, title='Late', deadline='2024-03-01T09:00:00Z')
    create(client, title='Late but done', deadline='2024-03-02T09:00:00Z', status='Done')
    create(client, title='Someday')

    assert titles(client, '?timeFilter=today') == ['Today']
    assert titles(client, '?timeFilter=tomorrow') == ['Tomorrow']
    assert titles(client, '?timeFilter=overdue') == ['Late']
    assert titles(client, '?timeFilter=long_term') == ['Someday']
    assert titles(client, '?timeFilter=next_week') == ['Today', 'Tomorrow']
    assert client.get('/api/tasks?timeFilter=yesterday').status_code == 400


def test_list_orders_by_deadline_and_filters(client):
    create(client, title='No deadline', domain='Household')
    create(client, title='Later', deadline='2024-05-01T00:00:00Z')
    create(client, title='Sooner', deadline='2024-04-01T00:00:00Z', status='Done')

    assert titles(client) == ['Sooner', 'Later', 'No deadline']
    assert titles(client, '?domain=Household') == ['No deadline']
    assert titles(client, '?status=Done') == ['Sooner']


def test_tasks_of_other_users_are_hidden(client, other_headers):
    task = create(client).get_json()['task']
    url = f"/api/tasks/{task['id']}"
    assert client.get(url, headers=other_headers).status_code == 404
    assert client.patch(f'{url}/status', headers=other_headers).status_code == 404
    assert client.get('/api/tasks', headers=other_headers).get_json()['tasks'] == []
