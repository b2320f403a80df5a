import re

from backend.errors import AuthenticationError, ConflictError, ValidationError
from models import User, db

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password(password):
    """At least 8 characters with a digit, an upper-case and a lower-case letter."""
    if len(password) < 8:
        raise ValidationError('Password must be at least 8 characters long', field='password')
    if not re.search(r"\d", password):
        raise ValidationError('Password must contain at least one number', field='password')
    if not re.search(r"[A-Z]", password):
        raise ValidationError('Password must contain at least one uppercase letter', field='password')
    if not re.search(r"[a-z]", password):
        raise ValidationError('Password must contain at least one lowercase letter', field='password')
    return password


def needs_setup():
    return db.session.query(User.id).first() is None


def setup_user(data, default_timezone):
    """Create the single account of this installation."""
    if not needs_setup():
        raise ConflictError('Setup has already been completed')
    email = str(data.get('email') or '').strip().lower()
    name = str(data.get('name') or '').strip()
    password = str(data.get('password') or '')
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('A valid email is required', field='email')
    if not name:
        raise ValidationError('Name is required', field='name')
    validate_password(password)

    user = User(email=email, name=name, timezone=str(data.get('timezone') or default_timezone))
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email, password):
    email = str(email or '').strip().lower()
    user = User.query.filter_by(email=email).first() if email else None
    if user is None or not user.check_password(str(password or '')):
        raise AuthenticationError('Invalid email or password')
    return user
