"""SQLAlchemy store adapters used by the recurrence, edit-scope and streak code."""

import logging
from contextlib import contextmanager

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from backend.errors import ConflictError
from models import (
    EXCEPTION_MODIFIED,
    Event,
    EventException,
    RoutineCompletion,
    db,
)

logger = logging.getLogger(__name__)


@contextmanager
def atomic():
    """Commit the session on success, roll back and re-raise on any failure."""
    session = db.session
    try:
        yield session
        session.commit()
    except StaleDataError as exc:
        session.rollback()
        logger.info("Concurrent modification detected: %s", exc)
        raise ConflictError('The record was changed by another request; reload and retry') from exc
    except IntegrityError as exc:
        session.rollback()
        logger.info("Integrity error on commit: %s", exc.orig)
        raise ConflictError('A conflicting record already exists') from exc
    except Exception:
        session.rollback()
        raise


def _non_recurring():
    return or_(Event.recurrence_type.is_(None), Event.recurrence_type == 'none')


class EventStore:
    def get(self, event_id, user_id):
        return Event.query.filter_by(id=event_id, user_id=user_id).first()

    def list_by_user(self, user_id):
        return Event.query.filter_by(user_id=user_id).order_by(Event.start_date.asc(), Event.id.asc()).all()

    def create(self, event):
        db.session.add(event)
        db.session.flush()
        return event

    def update(self, event):
        db.session.flush()
        return event

    def delete(self, event):
        db.session.delete(event)
        db.session.flush()

    def find_in_range(self, user_id, start, end):
        """Definitions that may produce an occurrence between ``start`` and ``end``."""
        return Event.query.filter(
            Event.user_id == user_id,
            or_(
                and_(_non_recurring(), Event.start_date >= start, Event.start_date <= end),
                and_(
                    ~_non_recurring(),
                    Event.start_date <= end,
                    or_(Event.recurrence_end.is_(None), Event.recurrence_end >= start.date()),
                ),
            ),
        ).order_by(Event.start_date.asc(), Event.id.asc()).all()


class ExceptionStore:
    def create(self, exception):
        db.session.add(exception)
        db.session.flush()
        return exception

    def get(self, event_id, original_date):
        return EventException.query.filter_by(event_id=event_id, original_date=original_date).first()

    def find_by_definition(self, event_id):
        return EventException.query.filter_by(event_id=event_id).order_by(EventException.original_date.asc()).all()

    def find_by_definition_and_range(self, event_id, day_start, day_end):
        return EventException.query.filter(
            EventException.event_id == event_id,
            EventException.original_date >= day_start,
            EventException.original_date <= day_end,
        ).order_by(EventException.original_date.asc()).all()

    def find_moved_into_range(self, user_id, start, end):
        """Modified exceptions whose new start lies in the window."""
        return EventException.query.filter(
            EventException.user_id == user_id,
            EventException.kind == EXCEPTION_MODIFIED,
            EventException.modified_start.isnot(None),
            EventException.modified_start >= start,
            EventException.modified_start <= end,
        ).all()

    def delete(self, exception):
        db.session.delete(exception)
        db.session.flush()

    def delete_on_or_after(self, event_id, day_value):
        removed = EventException.query.filter(
            EventException.event_id == event_id,
            EventException.original_date >= day_value,
        ).delete(synchronize_session='fetch')
        return removed


class CompletionStore:
    def get_for_date(self, routine_id, day_value):
        return RoutineCompletion.query.filter_by(routine_id=routine_id, completed_on=day_value).first()

    def record(self, routine, day_value, status):
        completion = RoutineCompletion(
            routine_id=routine.id,
            user_id=routine.user_id,
            completed_on=day_value,
            status=status,
        )
        db.session.add(completion)
        db.session.flush()
        return completion

    def history(self, routine_id, limit=30):
        return RoutineCompletion.query.filter_by(routine_id=routine_id).order_by(
            RoutineCompletion.completed_on.desc()
        ).limit(limit).all()

    def statuses_between(self, routine_id, day_start, day_end):
        rows = RoutineCompletion.query.filter(
            RoutineCompletion.routine_id == routine_id,
            RoutineCompletion.completed_on >= day_start,
            RoutineCompletion.completed_on <= day_end,
        ).all()
        return {row.completed_on: row.status for row in rows}
