"""Error types raised by the services and translated to JSON responses in app.py."""


class LifeOSError(Exception):
    status_code = 400

    def __init__(self, message, payload=None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self):
        data = dict(self.payload)
        data['error'] = self.message
        return data


class ValidationError(LifeOSError, ValueError):
    """A request field is missing or malformed."""

    def __init__(self, message, field=None, payload=None):
        super().__init__(message, payload=payload)
        self.field = field
        if field:
            self.payload.setdefault('field', field)


class InvalidScopeError(ValidationError):
    """An edit scope that does not apply to the target definition."""

    def __init__(self, message, field='editScope'):
        super().__init__(message, field=field)


class AuthenticationError(LifeOSError):
    status_code = 401


class NotFoundError(LifeOSError):
    # Also raised for records owned by another user.
    status_code = 404


class ConflictError(LifeOSError):
    status_code = 409


class AlreadyRecordedToday(ConflictError):
    def __init__(self, routine_id, day):
        super().__init__(
            'Routine already recorded for this day',
            payload={'routineId': routine_id, 'date': day.isoformat()},
        )
        self.routine_id = routine_id
        self.day = day
