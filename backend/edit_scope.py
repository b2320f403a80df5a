"""The "this / following / all" edit and delete protocol for recurring events.

``changes`` dicts use model attribute names (``title``, ``start_date``,
``end_date``, ``all_day``, ``domain``, ``recurrence_type``, ``recurrence_days``
as a set of weekdays, ``recurrence_end``, ``hide_from_agenda``). Only the keys
present are applied.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from backend.errors import ConflictError, InvalidScopeError, NotFoundError, ValidationError
from backend.occurrences import Occurrence, occurrence_on
from backend.recurrence import format_weekday_names
from backend.stores import EventStore, ExceptionStore, atomic
from models import EXCEPTION_DELETED, EXCEPTION_MODIFIED, Event, EventException

logger = logging.getLogger(__name__)

SCOPE_THIS = 'this'
SCOPE_FOLLOWING = 'following'
SCOPE_ALL = 'all'
EDIT_SCOPES = (SCOPE_THIS, SCOPE_FOLLOWING, SCOPE_ALL)

OCCURRENCE_FIELDS = ('title', 'start_date', 'end_date', 'all_day', 'domain')
DEFINITION_FIELDS = OCCURRENCE_FIELDS + ('recurrence_type', 'recurrence_end', 'hide_from_agenda')

# occurrence attribute -> exception column
_OVERRIDE_COLUMNS = {
    'title': 'modified_title',
    'start': 'modified_start',
    'end': 'modified_end',
    'domain': 'modified_domain',
    'all_day': 'modified_all_day',
}


@dataclass
class EditResult:
    scope: str
    definition: Optional[Event] = None
    created: Optional[Event] = None
    exception: Optional[EventException] = None
    deleted: bool = False


def _check_scope(definition, scope, occurrence_date, field):
    if scope not in EDIT_SCOPES:
        raise InvalidScopeError(f'Invalid scope: {scope}', field=field)
    if scope == SCOPE_ALL:
        return None
    if not definition.is_recurring:
        raise InvalidScopeError("Non-recurring events can only use the 'all' scope", field=field)
    if occurrence_date is None:
        raise ValidationError(f"Occurrence date is required for '{scope}' scope", field='occurrenceDate')
    occurrence = occurrence_on(definition, occurrence_date)
    if occurrence is None:
        raise ValidationError(
            f'{occurrence_date.isoformat()} is not an occurrence of this event',
            field='occurrenceDate',
        )
    return occurrence


def _check_version(definition, expected_version):
    if expected_version is not None and expected_version != definition.version:
        raise ConflictError(
            'The event was changed by another request; reload and retry',
            payload={'currentVersion': definition.version},
        )


def apply_fields(event, changes):
    if 'start_date' in changes and 'end_date' not in changes and event.end_date is not None and event.start_date is not None:
        # Moving the start keeps the duration.
        changes = dict(changes, end_date=changes['start_date'] + (event.end_date - event.start_date))
    if 'start_date' in changes and event.start_date is not None and changes['start_date'].date() != event.start_date.date():
        # A new start day is the new anchor.
        event.recurrence_anchor_day = None
    for key in DEFINITION_FIELDS:
        if key in changes:
            setattr(event, key, changes[key])
    if 'recurrence_days' in changes:
        event.recurrence_days = format_weekday_names(changes['recurrence_days'])
    validate_event(event)
    return event


def validate_event(event):
    if not (event.title or '').strip():
        raise ValidationError('Title is required', field='title')
    if event.start_date is None:
        raise ValidationError('Start date is required', field='startDate')
    if event.end_date is not None and event.end_date < event.start_date:
        raise ValidationError('End date cannot be before start date', field='endDate')
    rule = event.rule
    if rule.end_date is not None and rule.end_date < event.start_date.date():
        raise ValidationError('Recurrence end cannot be before the start date', field='recurrenceEnd')
    return event


def _requested_occurrence(occurrence, changes):
    values = {
        'title': changes.get('title', occurrence.title),
        'start': changes.get('start_date', occurrence.start),
        'domain': changes.get('domain', occurrence.domain),
        'all_day': changes.get('all_day', occurrence.all_day),
    }
    if 'end_date' in changes:
        values['end'] = changes['end_date']
    elif occurrence.end is not None:
        values['end'] = values['start'] + (occurrence.end - occurrence.start)
    else:
        values['end'] = None
    if values['end'] is not None and values['end'] < values['start']:
        raise ValidationError('End date cannot be before start date', field='endDate')
    return values


def _replace_exception(exceptions, definition, day_value):
    existing = exceptions.get(definition.id, day_value)
    if existing is not None:
        exceptions.delete(existing)
        return True
    return False


def _edit_this(definition, occurrence: Occurrence, changes, exceptions):
    requested = _requested_occurrence(occurrence, changes)
    overrides = {
        column: requested[attr]
        for attr, column in _OVERRIDE_COLUMNS.items()
        if requested[attr] != getattr(occurrence, attr)
    }
    ignored = set(changes) - set(OCCURRENCE_FIELDS)
    if ignored:
        logger.debug("Ignoring series fields %s on single-occurrence edit of event %s", sorted(ignored), definition.id)

    replaced = _replace_exception(exceptions, definition, occurrence.original_date)
    exception = None
    if overrides:
        exception = exceptions.create(EventException(
            event_id=definition.id,
            user_id=definition.user_id,
            original_date=occurrence.original_date,
            kind=EXCEPTION_MODIFIED,
            **overrides
        ))
    logger.info(
        "Event %s occurrence %s %s (%s)",
        definition.id,
        occurrence.original_date,
        'modified' if exception else 'restored',
        'replaced' if replaced else 'new',
    )
    return EditResult(scope=SCOPE_THIS, definition=definition, exception=exception)


def _truncate(definition, day_value, exceptions):
    definition.recurrence_end = day_value - timedelta(days=1)
    removed = exceptions.delete_on_or_after(definition.id, day_value)
    if removed:
        logger.info("Dropped %s exceptions of event %s on or after %s", removed, definition.id, day_value)


def _kept_anchor_day(definition, changes):
    """Anchor day the split-off series inherits when its rule kind is unchanged."""
    if changes.get('recurrence_type', definition.recurrence_type) != definition.recurrence_type:
        return None
    rule = definition.rule
    return rule.day_of_month or rule.day


def _edit_following(definition, occurrence: Occurrence, changes, events, exceptions):
    day_value = occurrence.original_date
    requested_start = changes.get('start_date', definition.start_date)
    new_start = datetime.combine(day_value, requested_start.time())
    if 'end_date' in changes:
        end_value = changes['end_date']
        duration = end_value - requested_start if end_value is not None else None
    else:
        duration = definition.end_date - definition.start_date if definition.end_date is not None else None
    if duration is not None and duration < timedelta(0):
        raise ValidationError('End date cannot be before start date', field='endDate')

    old_end = definition.recurrence_end
    created = Event(
        user_id=definition.user_id,
        title=changes.get('title', definition.title),
        start_date=new_start,
        end_date=new_start + duration if duration is not None else None,
        all_day=changes.get('all_day', definition.all_day),
        domain=changes.get('domain', definition.domain),
        recurrence_type=changes.get('recurrence_type', definition.recurrence_type),
        recurrence_end=changes.get('recurrence_end', old_end),
        recurrence_days=definition.recurrence_days,
        recurrence_anchor_day=_kept_anchor_day(definition, changes),
        hide_from_agenda=changes.get('hide_from_agenda', definition.hide_from_agenda),
    )
    if 'recurrence_days' in changes:
        created.recurrence_days = format_weekday_names(changes['recurrence_days'])
    validate_event(created)

    _truncate(definition, day_value, exceptions)
    events.update(definition)
    events.create(created)
    logger.info("Split event %s at %s into new event %s", definition.id, day_value, created.id)
    return EditResult(scope=SCOPE_FOLLOWING, definition=definition, created=created)


def _edit_all(definition, changes, events):
    apply_fields(definition, changes)
    events.update(definition)
    logger.info("Updated all occurrences of event %s", definition.id)
    return EditResult(scope=SCOPE_ALL, definition=definition)


def apply_edit(definition_id, user_id, scope, occurrence_date, changes, expected_version=None,
               events=None, exceptions=None):
    events = events or EventStore()
    exceptions = exceptions or ExceptionStore()
    with atomic():
        definition = events.get(definition_id, user_id)
        if definition is None:
            raise NotFoundError('Event not found')
        _check_version(definition, expected_version)
        occurrence = _check_scope(definition, scope, occurrence_date, 'editScope')
        if scope == SCOPE_THIS:
            return _edit_this(definition, occurrence, changes, exceptions)
        if scope == SCOPE_FOLLOWING and occurrence.original_date > definition.start_date.date():
            return _edit_following(definition, occurrence, changes, events, exceptions)
        # Following from the first occurrence rewrites the whole series.
        return _edit_all(definition, changes, events)


def apply_delete(definition_id, user_id, scope, occurrence_date, expected_version=None,
                 events=None, exceptions=None):
    events = events or EventStore()
    exceptions = exceptions or ExceptionStore()
    with atomic():
        definition = events.get(definition_id, user_id)
        if definition is None:
            raise NotFoundError('Event not found')
        _check_version(definition, expected_version)
        occurrence = _check_scope(definition, scope, occurrence_date, 'deleteScope')

        if scope == SCOPE_THIS:
            _replace_exception(exceptions, definition, occurrence.original_date)
            exception = exceptions.create(EventException(
                event_id=definition.id,
                user_id=definition.user_id,
                original_date=occurrence.original_date,
                kind=EXCEPTION_DELETED,
            ))
            logger.info("Deleted occurrence %s of event %s", occurrence.original_date, definition.id)
            return EditResult(scope=scope, definition=definition, exception=exception)

        if scope == SCOPE_FOLLOWING and occurrence.original_date > definition.start_date.date():
            _truncate(definition, occurrence.original_date, exceptions)
            events.update(definition)
            logger.info("Ended event %s before %s", definition.id, occurrence.original_date)
            return EditResult(scope=scope, definition=definition)

        events.delete(definition)
        logger.info("Deleted event %s", definition_id)
        return EditResult(scope=scope, deleted=True)
