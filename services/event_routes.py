"""Calendar event route handlers extracted from app.py."""

from backend.edit_scope import SCOPE_ALL, apply_delete, apply_edit
from services.event_service import create_event, list_occurrences, parse_event_changes


def _scope_request(data, scope_key):
    import app as a

    parse_day_value = a.parse_day_value
    parse_int = a.parse_int
    ValidationError = a.ValidationError

    scope = str(data.get(scope_key) or '').strip().lower()
    if not scope:
        raise ValidationError(f'{scope_key} is required', field=scope_key)
    raw_day = data.get('occurrenceDate')
    occurrence_day = None
    if raw_day not in (None, ''):
        occurrence_day = parse_day_value(raw_day)
        if occurrence_day is None:
            raise ValidationError('Invalid occurrence date format', field='occurrenceDate')
    return scope, occurrence_day, parse_int(data.get('version'))


def events():
    import app as a

    EVENT_DOMAINS = a.EVENT_DOMAINS
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    parse_timestamp = a.parse_timestamp
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
        event = create_event(user, data, EVENT_DOMAINS)
        a.app.logger.info("Event %s created by user %s", event.id, user.id)
        return jsonify({'message': 'Event created successfully', 'event': event.to_dict()}), 201

    start_raw = request.args.get('start')
    end_raw = request.args.get('end')
    if not start_raw or not end_raw:
        return jsonify({'error': 'Start and end dates are required'}), 400
    window_start = parse_timestamp(start_raw)
    if window_start is None:
        return jsonify({'error': 'Invalid start date format'}), 400
    window_end = parse_timestamp(end_raw)
    if window_end is None:
        return jsonify({'error': 'Invalid end date format'}), 400
    if len(end_raw.strip()) == 10:
        # A bare end date includes that whole day.
        window_end = window_end.replace(hour=23, minute=59, second=59, microsecond=999999)

    occurrences = list_occurrences(user, window_start, window_end)
    return jsonify({'events': [occ.to_dict() for occ in occurrences]})


def event_detail(event_id):
    import app as a

    EVENT_DOMAINS = a.EVENT_DOMAINS
    Event = a.Event
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    if request.method == 'GET':
        event = Event.query.filter_by(id=event_id, user_id=user.id).first_or_404()
        data = event.to_dict()
        data['exceptions'] = [exc.to_dict() for exc in event.exceptions]
        return jsonify({'event': data})

    data = request.get_json(silent=True) or {}

    if request.method == 'DELETE':
        if not data:
            data = request.args.to_dict()
        scope, occurrence_day, version = _scope_request(data, 'deleteScope')
        result = apply_delete(event_id, user.id, scope, occurrence_day, expected_version=version)
        a.app.logger.info("Event %s deleted by user %s (scope=%s)", event_id, user.id, result.scope)
        return jsonify({'message': 'Event deleted successfully'})

    if 'editScope' not in data:
        data = dict(data, editScope=SCOPE_ALL)
    scope, occurrence_day, version = _scope_request(data, 'editScope')
    changes = parse_event_changes(data, EVENT_DOMAINS)
    result = apply_edit(event_id, user.id, scope, occurrence_day, changes, expected_version=version)
    target = result.created or result.definition
    payload = {'message': 'Event updated successfully', 'event': target.to_dict()}
    if result.exception is not None:
        payload['exception'] = result.exception.to_dict()
    if result.created is not None:
        payload['previousEvent'] = result.definition.to_dict()
    a.app.logger.info("Event %s updated by user %s (scope=%s)", event_id, user.id, result.scope)
    return jsonify(payload)
