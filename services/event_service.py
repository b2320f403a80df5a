"""Event payload parsing, creation with conflict detection, and window reads."""

import logging
from datetime import timedelta

from backend.edit_scope import apply_fields
from backend.errors import ConflictError, ValidationError
from backend.occurrences import expand_occurrences
from backend.recurrence import RECURRENCE_KINDS, RECURRENCE_NONE, parse_weekday_names
from backend.stores import EventStore, ExceptionStore, atomic
from models import Event, db
from services.validation_service import parse_bool, parse_day_value, parse_timestamp, require_choice

logger = logging.getLogger(__name__)

# Holidays never block other events and are never blocked.
CONFLICT_FREE_DOMAINS = ('Holidays',)


def parse_event_changes(data, domains):
    """Translate a camelCase request body into model attribute changes.

    Only keys present in ``data`` are returned.
    """
    changes = {}
    if 'title' in data:
        title = str(data.get('title') or '').strip()
        if not title:
            raise ValidationError('Title is required', field='title')
        changes['title'] = title
    if 'startDate' in data:
        start = parse_timestamp(data.get('startDate'))
        if start is None:
            raise ValidationError('Invalid start date format', field='startDate')
        changes['start_date'] = start
    if 'endDate' in data:
        raw_end = data.get('endDate')
        end = parse_timestamp(raw_end)
        if raw_end not in (None, '') and end is None:
            raise ValidationError('Invalid end date format', field='endDate')
        changes['end_date'] = end
    if 'allDay' in data:
        changes['all_day'] = parse_bool(data.get('allDay'))
    if 'domain' in data:
        changes['domain'] = require_choice(data.get('domain'), domains, 'domain')
    if 'hideFromAgenda' in data:
        changes['hide_from_agenda'] = parse_bool(data.get('hideFromAgenda'))

    if 'recurrenceType' in data:
        kind = str(data.get('recurrenceType') or RECURRENCE_NONE).strip().lower()
        require_choice(kind, RECURRENCE_KINDS, 'recurrenceType', 'recurrence type')
        changes['recurrence_type'] = None if kind == RECURRENCE_NONE else kind
    if 'isRecurring' in data and not parse_bool(data.get('isRecurring')):
        changes['recurrence_type'] = None
    if 'recurrenceEnd' in data:
        raw_until = data.get('recurrenceEnd')
        until = parse_day_value(raw_until) if raw_until not in (None, '') else None
        if raw_until not in (None, '') and until is None:
            raise ValidationError('Invalid recurrence end format', field='recurrenceEnd')
        changes['recurrence_end'] = until
    if 'recurrenceDays' in data:
        changes['recurrence_days'] = parse_weekday_names(data.get('recurrenceDays'))
    return changes


def find_conflict(user_id, start, end, exclude_id=None):
    """First timed occurrence overlapping [start, end), or None."""
    occurrences = expand_occurrences(
        EventStore(),
        ExceptionStore(),
        user_id,
        start - timedelta(days=1),
        end + timedelta(days=1),
    )
    for occurrence in occurrences:
        if exclude_id is not None and occurrence.definition_id == exclude_id:
            continue
        if occurrence.all_day or occurrence.domain in CONFLICT_FREE_DOMAINS:
            continue
        if occurrence.overlaps(start, end):
            return occurrence
    return None


def create_event(user, data, domains):
    changes = parse_event_changes(data, domains)
    if 'title' not in changes:
        raise ValidationError('Title is required', field='title')
    if 'start_date' not in changes:
        raise ValidationError('Start date is required', field='startDate')
    if 'domain' not in changes:
        raise ValidationError('Domain is required', field='domain')
    if parse_bool(data.get('isRecurring')) and not changes.get('recurrence_type'):
        raise ValidationError('Recurrence type is required for recurring events', field='recurrenceType')

    event = Event(user_id=user.id, all_day=False, hide_from_agenda=False)
    apply_fields(event, changes)

    check_conflicts = (
        not event.all_day
        and event.end_date is not None
        and event.domain not in CONFLICT_FREE_DOMAINS
        and not parse_bool(data.get('forceOverlap'))
    )
    if check_conflicts:
        try:
            conflict = find_conflict(user.id, event.start_date, event.end_date)
        except Exception as exc:
            # A failed check only loses the warning; creation goes ahead.
            logger.warning("Conflict check failed for user %s: %s", user.id, exc)
            db.session.rollback()
            conflict = None
        if conflict is not None:
            raise ConflictError(
                'Event conflicts with an existing event',
                payload={
                    'conflict_warning': True,
                    'conflictEventId': conflict.definition_id,
                    'conflictEventTitle': conflict.title,
                    'conflictOccurrence': conflict.to_dict(),
                },
            )

    with atomic():
        EventStore().create(event)
    logger.info("Created event %s for user %s", event.id, user.id)
    return event


def list_occurrences(user, window_start, window_end):
    if window_end < window_start:
        raise ValidationError('End must not be before start', field='end')
    return expand_occurrences(EventStore(), ExceptionStore(), user.id, window_start, window_end)
