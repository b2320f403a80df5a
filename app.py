import os
import logging
from datetime import datetime, time, timedelta

from dotenv import load_dotenv
from flask import Flask, request, jsonify
from flask_login import LoginManager, current_user, login_user, logout_user

load_dotenv()

from models import db, User, Task, Routine, Event, Category, TechStackItem, Project, ProjectTask
from backend.clock import Clock
from backend.errors import LifeOSError, AuthenticationError, ConflictError, NotFoundError, ValidationError
from backend.stores import CompletionStore
from services import (
    event_routes, project_routes, routine_routes, task_routes, tech_stack_routes, user_routes,
)
from services.validation_service import parse_bool, parse_day_value, parse_int, parse_timestamp

APP_VERSION = '1.5.0'

EVENT_DOMAINS = [
    'Work', 'University', 'Personal', 'Coding Time', 'Study', 'Health',
    'Social', 'Holidays', 'Travel', 'Maintenance', 'Entertainment', 'Family',
]
TASK_DOMAINS = [
    'Work', 'University', 'Coding Project', 'Personal Project',
    'Goals', 'Finances', 'Household', 'Health',
]
TASK_PRIORITIES = ['Low', 'Medium', 'High']
TASK_STATUSES = ['Todo', 'Done']
TASK_TIME_FILTERS = ['long_term', 'overdue', 'today', 'tomorrow', 'next_week', 'next_month']
PROJECT_STATUSES = [
    'Idea', 'Planning', 'Active', 'Debugging', 'Testing', 'On Hold', 'Finished', 'Abandoned',
]
ROUTINE_FREQUENCIES = ['Daily', 'Weekly', 'Monthly', 'Quarterly', 'Yearly']
ROUTINE_TIME_TYPES = ['AM', 'PM', 'AllDay', 'Specific']

database_url = os.environ.get('DATABASE_URL', 'sqlite:///lifeos.db')
if database_url.startswith('postgres://'):
    database_url = database_url.replace('postgres://', 'postgresql://', 1)

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = database_url
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['PERMANENT_SESSION_LIFETIME'] = 30 * 24 * 60 * 60  # 30 days in seconds
app.config['API_SHARED_KEY'] = os.environ.get('API_SHARED_KEY')  # Optional shared key for API callers
app.config['DEFAULT_TIMEZONE'] = os.environ.get('DEFAULT_TIMEZONE', 'Europe/Berlin')
app.config['ALLOWED_ORIGINS'] = [
    origin.strip() for origin in os.environ.get('ALLOWED_ORIGINS', '').split(',') if origin.strip()
]

log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(level=log_level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
app.logger.setLevel(log_level)

db.init_app(app)
app.extensions['clock'] = Clock(app.config['DEFAULT_TIMEZONE'])

login_manager = LoginManager()
login_manager.init_app(app)


@login_manager.user_loader
def load_user(user_id):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def get_clock():
    return app.extensions['clock']


def get_current_user():
    """Resolve the current user from a shared API key + user id header, else fall back to the login session."""
    # Header-based auth for service callers
    api_key = request.headers.get('X-API-Key')
    api_user_id = request.headers.get('X-User-Id')
    shared_key = app.config.get('API_SHARED_KEY')
    if shared_key and api_key and api_user_id:
        try:
            api_uid_int = int(api_user_id)
        except (TypeError, ValueError):
            api_uid_int = None
        if api_uid_int and api_key == shared_key:
            user = db.session.get(User, api_uid_int)
            if user:
                return user

    # Session-based auth for browser users
    if current_user and current_user.is_authenticated:
        return current_user
    return None


@app.errorhandler(LifeOSError)
def handle_lifeos_error(exc):
    if exc.status_code >= 500:
        app.logger.error("Request failed: %s", exc.message)
    return jsonify(exc.to_dict()), exc.status_code


@app.errorhandler(404)
def handle_not_found(exc):
    return jsonify({'error': 'Not found'}), 404


@app.errorhandler(405)
def handle_method_not_allowed(exc):
    return jsonify({'error': 'Method not allowed'}), 405


@app.after_request
def add_cors_headers(response):
    origin = request.headers.get('Origin')
    if origin and origin in app.config.get('ALLOWED_ORIGINS', []):
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type, X-API-Key, X-User-Id'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, PATCH, DELETE, OPTIONS'
    return response


# Route table: (rule, endpoint, view, methods)
ROUTES = [
    ('/health', 'health', user_routes.health, ['GET']),
    ('/api/status', 'status', user_routes.status, ['GET']),
    ('/api/setup', 'setup', user_routes.setup, ['POST']),
    ('/api/auth/login', 'login', user_routes.login, ['POST']),
    ('/api/auth/logout', 'logout', user_routes.logout, ['POST']),
    ('/api/auth/me', 'me', user_routes.me, ['GET']),

    ('/api/tasks', 'tasks', task_routes.tasks, ['GET', 'POST']),
    ('/api/tasks/<int:task_id>', 'task_detail', task_routes.task_detail, ['GET', 'PUT', 'DELETE']),
    ('/api/tasks/<int:task_id>/status', 'task_toggle_status', task_routes.toggle_status, ['PATCH']),

    ('/api/routines', 'routines', routine_routes.routines, ['GET', 'POST']),
    ('/api/routines/today', 'routines_today', routine_routes.todays_routines, ['GET']),
    ('/api/routines/<int:routine_id>', 'routine_detail', routine_routes.routine_detail, ['GET', 'PUT', 'DELETE']),
    ('/api/routines/<int:routine_id>/complete', 'routine_complete', routine_routes.complete_routine, ['PATCH']),
    ('/api/routines/<int:routine_id>/skip', 'routine_skip', routine_routes.skip_routine, ['PATCH']),
    ('/api/routines/<int:routine_id>/history', 'routine_history', routine_routes.routine_history, ['GET']),

    ('/api/events', 'events', event_routes.events, ['GET', 'POST']),
    ('/api/events/<int:event_id>', 'event_detail', event_routes.event_detail, ['GET', 'PUT', 'DELETE']),

    ('/api/categories', 'categories', tech_stack_routes.categories, ['GET', 'POST']),
    ('/api/categories/<int:category_id>', 'category_detail', tech_stack_routes.category_detail, ['GET', 'PUT', 'DELETE']),
    ('/api/tech-stack', 'tech_stack', tech_stack_routes.tech_stack_items, ['GET', 'POST']),
    ('/api/tech-stack/<int:item_id>', 'tech_stack_detail', tech_stack_routes.tech_stack_item_detail, ['GET', 'PUT', 'DELETE']),

    ('/api/projects', 'projects', project_routes.projects, ['GET', 'POST']),
    ('/api/projects/<int:project_id>', 'project_detail', project_routes.project_detail, ['GET', 'PUT', 'DELETE']),
    ('/api/projects/<int:project_id>/tasks', 'project_tasks', project_routes.project_tasks, ['GET', 'POST']),
    ('/api/projects/<int:project_id>/tasks/<int:task_id>', 'project_task_remove', project_routes.remove_task, ['DELETE']),
]

for rule, endpoint, view, methods in ROUTES:
    app.add_url_rule(rule, endpoint=endpoint, view_func=view, methods=methods)

with app.app_context():
    db.create_all()

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=parse_bool(os.environ.get('FLASK_DEBUG')))
