def create(client, **fields):
    body = {
        'title': 'Review',
        'startDate': '2024-03-20T10:00:00Z',
        'endDate': '2024-03-20T11:00:00Z',
        'domain': 'Work',
    }
    body.update(fields)
    return client.post('/api/events', json=body)


def listed(client, start, end):
    resp = client.get(f'/api/events?start={start}&end={end}')
    assert resp.status_code == 200
    return resp.get_json()['events']


def weekly_standup(client):
    resp = create(
        client,
        title='Standup',
        startDate='2024-03-04T08:00:00Z',
        endDate='2024-03-04T08:30:00Z',
        isRecurring=True,
        recurrenceType='Weekly',
        recurrenceDays=['monday'],
    )
    assert resp.status_code == 201
    return resp.get_json()['event']


def test_create_and_list_single_event(client):
    resp = create(client)
    assert resp.status_code == 201
    event = resp.get_json()['event']
    assert event['startDate'] == '2024-03-20T10:00:00Z'
    assert event['isRecurring'] is False

    events = listed(client, '2024-03-20', '2024-03-20')
    assert [e['title'] for e in events] == ['Review']
    assert events[0]['occurrenceDate'] == '2024-03-20'
    assert listed(client, '2024-03-21', '2024-03-22') == []


def test_create_requires_fields(client):
    resp = client.post('/api/events', json={'title': 'No start', 'domain': 'Work'})
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'startDate'

    resp = create(client, domain='Gardening')
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'domain'

    resp = create(client, isRecurring=True)
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'recurrenceType'


def test_overlap_is_reported_unless_forced(client):
    first = create(client).get_json()['event']
    clash = create(client, title='Lunch', startDate='2024-03-20T10:30:00Z', endDate='2024-03-20T11:30:00Z')
    assert clash.status_code == 409
    body = clash.get_json()
    assert body['conflict_warning'] is True
    assert body['conflictEventId'] == first['id']
    assert body['conflictEventTitle'] == 'Review'

    forced = create(client, title='Lunch', startDate='2024-03-20T10:30:00Z',
                    endDate='2024-03-20T11:30:00Z', forceOverlap=True)
    assert forced.status_code == 201

    # touching intervals do not overlap
    assert create(client, title='Next', startDate='2024-03-20T11:30:00Z',
                  endDate='2024-03-20T12:00:00Z').status_code == 201


def test_holidays_are_left_out_of_conflict_checks(client):
    create(client)
    trip = create(client, title='Trip', domain='Holidays', startDate='2024-03-20T09:00:00Z',
                  endDate='2024-03-20T18:00:00Z')
    assert trip.status_code == 201
    # the existing holiday does not block a work meeting either
    assert create(client, title='Call', startDate='2024-03-20T15:00:00Z',
                  endDate='2024-03-20T15:30:00Z').status_code == 201


def test_failed_conflict_check_does_not_block_creation(client, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError('database went away')

    monkeypatch.setattr('services.event_service.find_conflict', broken)
    resp = create(client)
    assert resp.status_code == 201
    assert [e['title'] for e in listed(client, '2024-03-20', '2024-03-20')] == ['Review']


def test_overlap_with_recurring_occurrence(client):
    weekly_standup(client)
    clash = create(client, title='Dentist', startDate='2024-03-18T08:15:00Z', endDate='2024-03-18T09:00:00Z')
    assert clash.status_code == 409
    assert clash.get_json()['conflictOccurrence']['occurrenceDate'] == '2024-03-18'


def test_window_requires_start_and_end(client):
    assert client.get('/api/events?start=2024-03-01').status_code == 400
    assert client.get('/api/events?start=yesterday&end=2024-03-02').status_code == 400
    assert client.get('/api/events?start=2024-03-05&end=2024-03-01').status_code == 400


def test_recurring_event_expands_in_window(client):
    weekly_standup(client)
    events = listed(client, '2024-03-01', '2024-03-31')
    assert [e['occurrenceDate'] for e in events] == ['2024-03-04', '2024-03-11', '2024-03-18', '2024-03-25']
    assert all(e['startDate'].endswith('T08:00:00Z') for e in events)


def test_edit_single_occurrence(client):
    event = weekly_standup(client)
    resp = client.put(f"/api/events/{event['id']}", json={
        'editScope': 'this',
        'occurrenceDate': '2024-03-11',
        'title': 'Sprint planning',
    })
    assert resp.status_code == 200
    assert resp.get_json()['exception']['modifiedTitle'] == 'Sprint planning'

    titles = [e['title'] for e in listed(client, '2024-03-01', '2024-03-18')]
    assert titles == ['Standup', 'Sprint planning', 'Standup']

    detail = client.get(f"/api/events/{event['id']}").get_json()['event']
    assert [exc['originalDate'] for exc in detail['exceptions']] == ['2024-03-11']


def test_edit_following_splits_series(client):
    event = weekly_standup(client)
    resp = client.put(f"/api/events/{event['id']}", json={
        'editScope': 'following',
        'occurrenceDate': '2024-03-18',
        'title': 'Standup v2',
    })
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['previousEvent']['recurrenceEnd'] == '2024-03-17'
    assert body['event']['id'] != event['id']

    titles = [e['title'] for e in listed(client, '2024-03-01', '2024-03-31')]
    assert titles == ['Standup', 'Standup', 'Standup v2', 'Standup v2']


def test_put_defaults_to_whole_series(client):
    event = weekly_standup(client)
    resp = client.put(f"/api/events/{event['id']}", json={'title': 'Weekly sync'})
    assert resp.status_code == 200
    assert {e['title'] for e in listed(client, '2024-03-01', '2024-03-31')} == {'Weekly sync'}


def test_stale_version_is_rejected(client):
    event = weekly_standup(client)
    url = f"/api/events/{event['id']}"
    assert client.put(url, json={'title': 'One', 'version': event['version']}).status_code == 200
    stale = client.put(url, json={'title': 'Two', 'version': event['version']})
    assert stale.status_code == 409


def test_invalid_scope_is_rejected(client):
    event = create(client).get_json()['event']
    resp = client.put(f"/api/events/{event['id']}", json={'editScope': 'this', 'occurrenceDate': '2024-03-20'})
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'editScope'


def test_delete_needs_scope(client):
    event = weekly_standup(client)
    url = f"/api/events/{event['id']}"
    assert client.delete(url).status_code == 400

    assert client.delete(f'{url}?deleteScope=this&occurrenceDate=2024-03-25').status_code == 200
    assert [e['occurrenceDate'] for e in listed(client, '2024-03-18', '2024-03-31')] == ['2024-03-18']

    assert client.delete(url, json={'deleteScope': 'all'}).status_code == 200
    assert client.get(url).status_code == 404


def test_events_of_other_users_are_hidden(client, other_headers):
    event = weekly_standup(client)
    url = f"/api/events/{event['id']}"
    assert client.get(url, headers=other_headers).status_code == 404
    assert client.put(url, json={'title': 'Mine'}, headers=other_headers).status_code == 404
    assert client.delete(url, json={'deleteScope': 'all'}, headers=other_headers).status_code == 404
    resp = client.get('/api/events?start=2024-03-01&end=2024-03-31', headers=other_headers)
    assert resp.get_json()['events'] == []
