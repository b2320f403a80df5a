"""Task route handlers extracted from app.py."""


def _apply_task_fields(task, data, creating=False):
    import app as a

    TASK_DOMAINS = a.TASK_DOMAINS
    TASK_PRIORITIES = a.TASK_PRIORITIES
    TASK_STATUSES = a.TASK_STATUSES
    ValidationError = a.ValidationError
    parse_timestamp = a.parse_timestamp

    if creating or 'title' in data:
        title = str(data.get('title') or '').strip()
        if not title:
            raise ValidationError('Title is required', field='title')
        task.title = title
    if 'description' in data:
        task.description = str(data.get('description') or '')
    if creating or 'domain' in data:
        domain = data.get('domain')
        if domain not in TASK_DOMAINS:
            raise ValidationError(f'Invalid domain: {domain}', field='domain')
        task.domain = domain
    if creating or 'priority' in data:
        priority = data.get('priority') or 'Medium'
        if priority not in TASK_PRIORITIES:
            raise ValidationError(f'Invalid priority: {priority}', field='priority')
        task.priority = priority
    if creating or 'status' in data:
        status = data.get('status') or 'Todo'
        if status not in TASK_STATUSES:
            raise ValidationError(f'Invalid status: {status}', field='status')
        task.status = status
    if 'deadline' in data:
        raw = data.get('deadline')
        deadline = parse_timestamp(raw)
        if raw not in (None, '') and deadline is None:
            raise ValidationError('Invalid deadline format', field='deadline')
        task.deadline = deadline
    return task


def _filter_by_time(query, time_filter, today):
    import app as a

    Task = a.Task
    datetime = a.datetime
    time = a.time
    timedelta = a.timedelta

    day_start = datetime.combine(today, time.min)
    if time_filter == 'long_term':
        return query.filter(Task.deadline.is_(None))
    if time_filter == 'overdue':
        return query.filter(Task.deadline.isnot(None), Task.deadline < day_start, Task.status != 'Done')
    windows = {
        'today': (day_start, day_start + timedelta(days=1)),
        'tomorrow': (day_start + timedelta(days=1), day_start + timedelta(days=2)),
        'next_week': (day_start, day_start + timedelta(days=7)),
        'next_month': (day_start, day_start + timedelta(days=30)),
    }
    lower, upper = windows[time_filter]
    return query.filter(Task.deadline >= lower, Task.deadline < upper)


def tasks():
    import app as a

    TASK_TIME_FILTERS = a.TASK_TIME_FILTERS
    Task = a.Task
    db = a.db
    get_clock = a.get_clock
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
        task = _apply_task_fields(Task(user_id=user.id), data, creating=True)
        db.session.add(task)
        db.session.commit()
        a.app.logger.info("Task %s created by user %s", task.id, user.id)
        return jsonify({'message': 'Task created successfully', 'task': task.to_dict()}), 201

    query = Task.query.filter_by(user_id=user.id)
    domain = request.args.get('domain')
    if domain:
        query = query.filter(Task.domain == domain)
    status = request.args.get('status')
    if status:
        query = query.filter(Task.status == status)
    time_filter = request.args.get('timeFilter')
    if time_filter:
        if time_filter not in TASK_TIME_FILTERS:
            return jsonify({'error': f'Invalid time filter: {time_filter}'}), 400
        query = _filter_by_time(query, time_filter, get_clock().today())

    items = query.order_by(Task.deadline.is_(None), Task.deadline.asc(), Task.created_at.desc()).all()
    return jsonify({'tasks': [t.to_dict() for t in items]})


def task_detail(task_id):
    import app as a

    ProjectTask = a.ProjectTask
    Task = a.Task
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    task = Task.query.filter_by(id=task_id, user_id=user.id).first_or_404()

    if request.method == 'GET':
        return jsonify({'task': task.to_dict()})

    if request.method == 'DELETE':
        ProjectTask.query.filter_by(task_id=task.id).delete(synchronize_session='fetch')
        db.session.delete(task)
        db.session.commit()
        a.app.logger.info("Task %s deleted by user %s", task_id, user.id)
        return jsonify({'message': 'Task deleted successfully'})

    data = request.get_json(silent=True) or {}
    _apply_task_fields(task, data)
    db.session.commit()
    return jsonify({'message': 'Task updated successfully', 'task': task.to_dict()})


def toggle_status(task_id):
    import app as a

    Task = a.Task
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    task = Task.query.filter_by(id=task_id, user_id=user.id).first_or_404()
    task.status = 'Todo' if task.status == 'Done' else 'Done'
    db.session.commit()
    return jsonify({'message': 'Task status updated', 'task': task.to_dict()})
