"""Category and tech stack route handlers extracted from app.py."""


def _require_name(data):
    import app as a

    name = str(data.get('name') or '').strip()
    if not name:
        raise a.ValidationError('Name is required', field='name')
    return name


def _owned_category(category_id, user_id):
    import app as a

    Category = a.Category
    parse_int = a.parse_int
    category_id = parse_int(category_id)
    category = Category.query.filter_by(id=category_id, user_id=user_id).first() if category_id else None
    if category is None:
        raise a.NotFoundError('Category not found')
    return category


def categories():
    import app as a

    Category = a.Category
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
        category = Category(user_id=user.id, name=_require_name(data))
        db.session.add(category)
        db.session.commit()
        return jsonify({'message': 'Category created successfully', 'category': category.to_dict()}), 201

    items = Category.query.filter_by(user_id=user.id).order_by(Category.name.asc()).all()
    return jsonify({'categories': [c.to_dict() for c in items]})


def category_detail(category_id):
    import app as a

    ConflictError = a.ConflictError
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    category = _owned_category(category_id, user.id)

    if request.method == 'GET':
        return jsonify({'category': category.to_dict()})

    if request.method == 'DELETE':
        if category.items:
            raise ConflictError(
                'Cannot delete a category that still has tech stack items',
                payload={'itemCount': len(category.items)},
            )
        db.session.delete(category)
        db.session.commit()
        return jsonify({'message': 'Category deleted successfully'})

    data = request.get_json(silent=True) or {}
    category.name = _require_name(data)
    db.session.commit()
    return jsonify({'message': 'Category updated successfully', 'category': category.to_dict()})


def tech_stack_items():
    import app as a

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
        name = _require_name(data)
        category = _owned_category(data.get('categoryId'), user.id)
        item = TechStackItem(user_id=user.id, category_id=category.id, name=name)
        db.session.add(item)
        db.session.commit()
        return jsonify({'message': 'Tech stack item created successfully', 'item': item.to_dict()}), 201

    query = TechStackItem.query.filter_by(user_id=user.id)
    category_id = request.args.get('categoryId')
    if category_id:
        query = query.filter(TechStackItem.category_id == _owned_category(category_id, user.id).id)
    items = query.order_by(TechStackItem.name.asc()).all()
    return jsonify({'items': [i.to_dict() for i in items]})


def tech_stack_item_detail(item_id):
    import app as a

    TechStackItem = a.TechStackItem
    db = a.db
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    item = TechStackItem.query.filter_by(id=item_id, user_id=user.id).first_or_404()

    if request.method == 'GET':
        return jsonify({'item': item.to_dict()})

    if request.method == 'DELETE':
        db.session.delete(item)
        db.session.commit()
        return jsonify({'message': 'Tech stack item deleted successfully'})

    data = request.get_json(silent=True) or {}
    if 'name' in data:
        item.name = _require_name(data)
    if 'categoryId' in data:
        item.category_id = _owned_category(data.get('categoryId'), user.id).id
    db.session.commit()
    return jsonify({'message': 'Tech stack item updated successfully', 'item': item.to_dict()})
