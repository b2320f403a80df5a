"""Routine route handlers extracted from app.py."""

from services.routine_service import (
    complete_routine as complete_routine_for_day,
    get_routine,
    parse_routine_payload,
    skip_routine as skip_routine_for_day,
    todays_routines as routines_due_today,
)


def routines():
    import app as a

    ROUTINE_FREQUENCIES = a.ROUTINE_FREQUENCIES
    ROUTINE_TIME_TYPES = a.ROUTINE_TIME_TYPES
    Routine = a.Routine
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
        values = parse_routine_payload(data, ROUTINE_FREQUENCIES, ROUTINE_TIME_TYPES)
        routine = Routine(user_id=user.id, current_streak=0, longest_streak=0, **values)
        db.session.add(routine)
        db.session.commit()
        a.app.logger.info("Routine %s created by user %s", routine.id, user.id)
        return jsonify({'message': 'Routine created successfully', 'routine': routine.to_dict()}), 201

    query = Routine.query.filter_by(user_id=user.id)
    frequency = request.args.get('frequency')
    if frequency:
        query = query.filter(Routine.frequency == frequency)
    items = query.order_by(Routine.created_at.asc(), Routine.id.asc()).all()
    return jsonify({'routines': [r.to_dict() for r in items]})


def todays_routines():
    import app as a

    get_clock = a.get_clock
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    today = get_clock().today()
    return jsonify({'date': today.isoformat(), 'routines': routines_due_today(user, today)})


def routine_detail(routine_id):
    import app as a

    ROUTINE_FREQUENCIES = a.ROUTINE_FREQUENCIES
    ROUTINE_TIME_TYPES = a.ROUTINE_TIME_TYPES
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    routine = get_routine(routine_id, user.id)

    if request.method == 'GET':
        return jsonify({'routine': routine.to_dict()})

    if request.method == 'DELETE':
        db.session.delete(routine)
        db.session.commit()
        a.app.logger.info("Routine %s deleted by user %s", routine_id, user.id)
        return jsonify({'message': 'Routine deleted successfully'})

    data = request.get_json(silent=True) or {}
    values = parse_routine_payload(data, ROUTINE_FREQUENCIES, ROUTINE_TIME_TYPES, routine=routine)
    for key, value in values.items():
        setattr(routine, key, value)
    db.session.commit()
    return jsonify({'message': 'Routine updated successfully', 'routine': routine.to_dict()})


def complete_routine(routine_id):
    import app as a

    get_clock = a.get_clock
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    routine = complete_routine_for_day(routine_id, user, get_clock().today())
    return jsonify({'message': 'Routine completed successfully', 'routine': routine.to_dict()})


def skip_routine(routine_id):
    import app as a

    get_clock = a.get_clock
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    routine = skip_routine_for_day(routine_id, user, get_clock().today())
    return jsonify({'message': 'Routine skipped successfully', 'routine': routine.to_dict()})


def routine_history(routine_id):
    import app as a

    CompletionStore = a.CompletionStore
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    parse_int = a.parse_int
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    routine = get_routine(routine_id, user.id)
    limit = parse_int(request.args.get('limit'), 30)
    limit = max(1, min(limit, 365))
    records = CompletionStore().history(routine.id, limit)
    return jsonify({'routineId': routine.id, 'history': [r.to_dict() for r in records]})
