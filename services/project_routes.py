"""Project route handlers extracted from app.py."""


def _parse_id_list(raw):
    import app as a

    parse_int = a.parse_int
    if raw is None or raw == '':
        return []
    values = raw if isinstance(raw, list) else str(raw).split(',')
    ids = []
    for val in values:
        parsed = parse_int(str(val).strip() if not isinstance(val, int) else val)
        if parsed is None:
            raise a.ValidationError(f'Invalid id: {val}', field='techStackIds')
        ids.append(parsed)
    return ids


def _owned_tech_stack(ids, user_id):
    import app as a

    TechStackItem = a.TechStackItem
    if not ids:
        return []
    items = TechStackItem.query.filter(TechStackItem.user_id == user_id, TechStackItem.id.in_(ids)).all()
    if len(items) != len(set(ids)):
        raise a.NotFoundError('Tech stack item not found')
    return items


def _apply_project_fields(project, data, user_id, creating=False):
    import app as a

    PROJECT_STATUSES = a.PROJECT_STATUSES
    ValidationError = a.ValidationError

    for key, label in (('title', 'Title'), ('description', 'Description')):
        if creating or key in data:
            value = str(data.get(key) or '').strip()
            if not value:
                raise ValidationError(f'{label} is required', field=key)
            setattr(project, key, value)
    if creating or 'status' in data:
        status = data.get('status') or 'Idea'
        if status not in PROJECT_STATUSES:
            raise ValidationError(f'Invalid status: {status}', field='status')
        project.status = status
    if 'repositoryUrl' in data:
        project.repository_url = (str(data.get('repositoryUrl') or '').strip() or None)
    if 'techStackIds' in data:
        project.tech_stack = _owned_tech_stack(_parse_id_list(data.get('techStackIds')), user_id)
    return project


def projects():
    import app as a

    Project = a.Project
    TechStackItem = a.TechStackItem
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
        project = _apply_project_fields(Project(user_id=user.id), data, user.id, creating=True)
        db.session.add(project)
        db.session.commit()
        a.app.logger.info("Project %s created by user %s", project.id, user.id)
        return jsonify({'message': 'Project created successfully', 'project': project.to_dict()}), 201

    query = Project.query.filter_by(user_id=user.id)
    status = request.args.get('status')
    if status:
        query = query.filter(Project.status == status)
    tech_ids = _parse_id_list(request.args.get('techStackIds'))
    if tech_ids:
        query = query.filter(Project.tech_stack.any(TechStackItem.id.in_(tech_ids)))
    items = query.order_by(Project.updated_at.desc(), Project.id.desc()).all()
    return jsonify({'projects': [p.to_dict() for p in items]})


def project_detail(project_id):
    import app as a

    Project = a.Project
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    project = Project.query.filter_by(id=project_id, user_id=user.id).first_or_404()

    if request.method == 'GET':
        return jsonify({'project': project.to_dict()})

    if request.method == 'DELETE':
        db.session.delete(project)
        db.session.commit()
        a.app.logger.info("Project %s deleted by user %s", project_id, user.id)
        return jsonify({'message': 'Project deleted successfully'})

    data = request.get_json(silent=True) or {}
    _apply_project_fields(project, data, user.id)
    db.session.commit()
    return jsonify({'message': 'Project updated successfully', 'project': project.to_dict()})


def project_tasks(project_id):
    import app as a

    ConflictError = a.ConflictError
    Project = a.Project
    ProjectTask = a.ProjectTask
    Task = a.Task
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    parse_int = a.parse_int
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    project = Project.query.filter_by(id=project_id, user_id=user.id).first_or_404()

    if request.method == 'GET':
        return jsonify({'tasks': [pt.to_dict() for pt in project.tasks], 'progress': project.get_progress()})

    data = request.get_json(silent=True) or {}
    task_id = parse_int(data.get('taskId'))
    if task_id is None:
        return jsonify({'error': 'taskId is required'}), 400
    task = Task.query.filter_by(id=task_id, user_id=user.id).first_or_404()
    if ProjectTask.query.filter_by(project_id=project.id, task_id=task.id).first():
        raise ConflictError('Task is already assigned to this project')
    link = ProjectTask(project_id=project.id, task_id=task.id)
    db.session.add(link)
    db.session.commit()
    return jsonify({'message': 'Task assigned successfully', 'projectTask': link.to_dict()}), 201


def remove_task(project_id, task_id):
    import app as a

    Project = a.Project
    ProjectTask = a.ProjectTask
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    project = Project.query.filter_by(id=project_id, user_id=user.id).first_or_404()
    link = ProjectTask.query.filter_by(project_id=project.id, task_id=task_id).first_or_404()
    db.session.delete(link)
    db.session.commit()
    return jsonify({'message': 'Task removed from project'})
