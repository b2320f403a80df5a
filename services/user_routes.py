"""Setup, login/session and status routes extracted from app.py for readability."""

from services.auth_service import authenticate, needs_setup, setup_user


def health():
    import app as a

    return a.jsonify({'status': 'ok'})


def status():
    import app as a

    APP_VERSION = a.APP_VERSION
    jsonify = a.jsonify
    return jsonify({'needsSetup': needs_setup(), 'version': APP_VERSION})


def setup():
    import app as a

    jsonify = a.jsonify
    login_user = a.login_user
    request = a.request

    data = request.get_json(silent=True) or {}
    user = setup_user(data, a.app.config.get('DEFAULT_TIMEZONE', 'Europe/Berlin'))
    login_user(user, remember=True)
    a.app.logger.info("Initial setup completed for user %s", user.id)
    return jsonify({'message': 'Setup completed successfully', 'user': user.to_dict()}), 201


def login():
    import app as a

    jsonify = a.jsonify
    login_user = a.login_user
    parse_bool = a.parse_bool
    request = a.request

    data = request.get_json(silent=True) or {}
    try:
        user = authenticate(data.get('email'), data.get('password'))
    except a.AuthenticationError:
        a.app.logger.warning("Failed login attempt for %s", data.get('email'))
        raise
    login_user(user, remember=parse_bool(data.get('remember'), True))
    return jsonify({'message': 'Login successful', 'user': user.to_dict()})


def logout():
    import app as a

    jsonify = a.jsonify
    logout_user = a.logout_user

    logout_user()
    return jsonify({'message': 'Logged out successfully'})


def me():
    import app as a

    get_current_user = a.get_current_user
    jsonify = a.jsonify
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401
    return jsonify({'user': user.to_dict()})
