"""Expansion of stored event definitions into concrete occurrences for a window."""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from typing import Optional

from backend.recurrence import (
    RECURRENCE_DAILY,
    RECURRENCE_WEEKLY,
    STEP_MONTHS,
    RecurrenceRule,
    advance,
    format_weekday_names,
    matches_frequency,
    months_between,
    shift_months,
)
from services.validation_service import format_timestamp

logger = logging.getLogger(__name__)

MAX_EXPANSION_STEPS = 1000


@dataclass(frozen=True)
class Occurrence:
    definition_id: int
    user_id: int
    title: str
    domain: str
    start: datetime
    end: Optional[datetime]
    all_day: bool
    hide_from_agenda: bool
    original_date: date
    rule: RecurrenceRule
    is_modified: bool = False
    exception_id: Optional[int] = None

    def overlaps(self, start, end):
        if self.end is None or end is None:
            return False
        return self.start < end and start < self.end

    def to_dict(self):
        return {
            'id': self.definition_id,
            'userId': self.user_id,
            'title': self.title,
            'startDate': format_timestamp(self.start),
            'endDate': format_timestamp(self.end),
            'allDay': self.all_day,
            'domain': self.domain,
            'isRecurring': self.rule.is_recurring,
            'recurrenceType': self.rule.kind if self.rule.is_recurring else None,
            'recurrenceEnd': self.rule.end_date.isoformat() if self.rule.end_date else None,
            'recurrenceDays': format_weekday_names(self.rule.weekdays),
            'hideFromAgenda': self.hide_from_agenda,
            'occurrenceDate': self.original_date.isoformat(),
            'isModified': self.is_modified,
            'exceptionId': self.exception_id,
        }


def _upper_bound(rule, window_end):
    if rule.end_date is None:
        return window_end
    return min(window_end, datetime.combine(rule.end_date, time.max))


def occurrence_starts(rule, first, window_start, window_end):
    """Yield the un-overridden start of every occurrence inside the window.

    ``first`` is the start of the series. The walk is fast-forwarded to the
    window so long-running series stay cheap, and it stops after
    MAX_EXPANSION_STEPS steps.
    """
    upper = _upper_bound(rule, window_end)
    if first > upper or window_start > upper:
        return

    if not rule.is_recurring:
        if first >= window_start:
            yield first
        return

    kind = rule.kind
    steps = 0
    if kind in STEP_MONTHS:
        step = STEP_MONTHS[kind]
        target_day = rule.day_of_month or rule.day or first.day
        index = 0
        if window_start > first:
            index = max(0, months_between(first, window_start) // step - 1)
        current = shift_months(first, index * step, target_day)
        while current <= upper and steps < MAX_EXPANSION_STEPS:
            if current >= window_start:
                yield current
            current = advance(current, kind, target_day)
            steps += 1
    else:
        current = first
        if window_start > first:
            current = first + timedelta(days=(window_start.date() - first.date()).days)
        while current <= upper and steps < MAX_EXPANSION_STEPS:
            if current >= window_start and (kind != RECURRENCE_WEEKLY or matches_frequency(rule, current)):
                yield current
            current = advance(current, RECURRENCE_DAILY)
            steps += 1

    if steps >= MAX_EXPANSION_STEPS and current <= upper:
        logger.warning("Expansion of %s rule stopped after %s steps at %s", kind, steps, current)


def base_occurrence(definition, start):
    end = None
    if definition.end_date is not None:
        end = start + (definition.end_date - definition.start_date)
    return Occurrence(
        definition_id=definition.id,
        user_id=definition.user_id,
        title=definition.title,
        domain=definition.domain,
        start=start,
        end=end,
        all_day=bool(definition.all_day),
        hide_from_agenda=bool(definition.hide_from_agenda),
        original_date=start.date(),
        rule=definition.rule,
    )


def occurrence_on(definition, day_value):
    """The un-overridden occurrence of ``definition`` on a calendar day, or None."""
    starts = occurrence_starts(
        definition.rule,
        definition.start_date,
        datetime.combine(day_value, time.min),
        datetime.combine(day_value, time.max),
    )
    for start in starts:
        return base_occurrence(definition, start)
    return None


def apply_modification(occurrence, exception):
    return replace(
        occurrence,
        title=exception.modified_title if exception.modified_title is not None else occurrence.title,
        start=exception.modified_start if exception.modified_start is not None else occurrence.start,
        end=exception.modified_end if exception.modified_end is not None else occurrence.end,
        domain=exception.modified_domain if exception.modified_domain is not None else occurrence.domain,
        all_day=exception.modified_all_day if exception.modified_all_day is not None else occurrence.all_day,
        is_modified=True,
        exception_id=exception.id,
    )


def apply_exceptions(occurrences, exceptions):
    by_date = {exc.original_date: exc for exc in exceptions}
    result = []
    for occurrence in occurrences:
        exc = by_date.get(occurrence.original_date)
        if exc is None:
            result.append(occurrence)
        elif not exc.is_deleted:
            result.append(apply_modification(occurrence, exc))
    return result


def expand_definition(definition, window_start, window_end, exceptions=(), moved_in=()):
    """Occurrences of one definition whose effective start lies in the window.

    ``exceptions`` are keyed on original dates inside the window; ``moved_in``
    are modified exceptions whose new start lies in the window while their
    original date may not.
    """
    if window_start > window_end:
        return []
    occurrences = [
        base_occurrence(definition, start)
        for start in occurrence_starts(definition.rule, definition.start_date, window_start, window_end)
    ]
    seen = {occ.original_date for occ in occurrences}
    occurrences = apply_exceptions(occurrences, exceptions)

    # Moved exceptions left over from a series made non-recurring are ignored.
    for exc in (moved_in if definition.is_recurring else ()):
        if exc.is_deleted or exc.original_date in seen:
            continue
        occurrence = occurrence_on(definition, exc.original_date)
        if occurrence is None:
            logger.debug("Ignoring exception %s: %s is not an occurrence of event %s", exc.id, exc.original_date, definition.id)
            continue
        occurrences.append(apply_modification(occurrence, exc))
        seen.add(exc.original_date)

    contained = [occ for occ in occurrences if window_start <= occ.start <= window_end]
    return sort_occurrences(contained)


def sort_occurrences(occurrences):
    return sorted(occurrences, key=lambda occ: (occ.start, occ.definition_id, occ.original_date))


def expand_occurrences(definitions, exceptions, user_id, window_start, window_end):
    """Expand every definition of a user that can touch the window.

    ``definitions`` and ``exceptions`` are the store adapters from
    backend.stores.
    """
    if window_start > window_end:
        return []
    day_start = window_start.date()
    day_end = window_end.date()
    moved_by_definition = {}
    for exc in exceptions.find_moved_into_range(user_id, window_start, window_end):
        moved_by_definition.setdefault(exc.event_id, []).append(exc)

    candidates = {definition.id: definition for definition in definitions.find_in_range(user_id, window_start, window_end)}
    for definition_id in moved_by_definition:
        if definition_id not in candidates:
            definition = definitions.get(definition_id, user_id)
            if definition is not None:
                candidates[definition_id] = definition

    occurrences = []
    for definition in candidates.values():
        in_range = []
        if definition.is_recurring:
            in_range = exceptions.find_by_definition_and_range(definition.id, day_start, day_end)
        occurrences.extend(
            expand_definition(
                definition,
                window_start,
                window_end,
                exceptions=in_range,
                moved_in=moved_by_definition.get(definition.id, ()),
            )
        )
    return sort_occurrences(occurrences)
