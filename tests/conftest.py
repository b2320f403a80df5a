import os
from datetime import datetime

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ.setdefault('LOG_LEVEL', 'WARNING')

import pytest

import app as app_module
from backend.clock import FixedClock
from models import db, User

PASSWORD = 'Sup3rSecret'


@pytest.fixture
def app():
    flask_app = app_module.app
    flask_app.config.update(TESTING=True, API_SHARED_KEY='shared-test-key')
    flask_app.extensions['clock'] = FixedClock(datetime(2024, 3, 14, 9, 0))
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def clock(app):
    return app.extensions['clock']


@pytest.fixture
def db_ctx(app):
    """App context for tests that call backend code directly."""
    with app.app_context():
        yield db


def make_user(email='ada@example.com', name='Ada'):
    user = User(email=email, name=name, timezone='Europe/Berlin')
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user(db_ctx):
    return make_user()


@pytest.fixture
def other_user(db_ctx):
    return make_user(email='grace@example.com', name='Grace')


@pytest.fixture
def client(app):
    test_client = app.test_client()
    resp = test_client.post('/api/setup', json={
        'email': 'ada@example.com',
        'name': 'Ada',
        'password': PASSWORD,
    })
    assert resp.status_code == 201
    return test_client


@pytest.fixture
def other_headers(app, client):
    """Header credentials for a second account, created after setup."""
    with app.app_context():
        grace = make_user(email='grace@example.com', name='Grace')
        grace_id = grace.id
    return {'X-API-Key': 'shared-test-key', 'X-User-Id': str(grace_id)}
