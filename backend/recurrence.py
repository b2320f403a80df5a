"""Calendar arithmetic shared by event expansion and routine scheduling.

Weekdays are Python weekday integers (Monday=0 .. Sunday=6) everywhere in the
backend. Conversion to the wire formats (lower-case names for events, a
Sunday-based index for routines) happens at the edges through the helpers at
the bottom of this module.
"""

import calendar
import json
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import FrozenSet, Optional

from backend.errors import ValidationError

RECURRENCE_NONE = 'none'
RECURRENCE_DAILY = 'daily'
RECURRENCE_WEEKLY = 'weekly'
RECURRENCE_MONTHLY = 'monthly'
RECURRENCE_QUARTERLY = 'quarterly'
RECURRENCE_YEARLY = 'yearly'

RECURRENCE_KINDS = (
    RECURRENCE_NONE,
    RECURRENCE_DAILY,
    RECURRENCE_WEEKLY,
    RECURRENCE_MONTHLY,
    RECURRENCE_QUARTERLY,
    RECURRENCE_YEARLY,
)

QUARTER_MONTHS = (1, 4, 7, 10)

STEP_MONTHS = {
    RECURRENCE_MONTHLY: 1,
    RECURRENCE_QUARTERLY: 3,
    RECURRENCE_YEARLY: 12,
}

WEEKDAY_NAMES = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']


@dataclass(frozen=True)
class RecurrenceRule:
    kind: str = RECURRENCE_NONE
    weekdays: FrozenSet[int] = field(default_factory=frozenset)
    day_of_month: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    end_date: Optional[date] = None

    @property
    def is_recurring(self):
        return self.kind != RECURRENCE_NONE

    @classmethod
    def for_event(cls, kind, start, weekdays=None, end_date=None, anchor_day=None):
        """Build the rule of an event; the day anchors come from its start.

        ``anchor_day`` overrides the day-of-month of the start for a series
        that begins on a clamped date (Apr 30 of a series on the 31st).
        """
        kind = (kind or RECURRENCE_NONE).lower()
        if kind == RECURRENCE_NONE:
            return cls()
        anchor = start.date() if isinstance(start, datetime) else start
        day = anchor_day or anchor.day
        rule = cls(
            kind=kind,
            weekdays=frozenset(weekdays or ()) if kind == RECURRENCE_WEEKLY else frozenset(),
            day_of_month=day if kind in (RECURRENCE_MONTHLY, RECURRENCE_QUARTERLY) else None,
            month=anchor.month if kind == RECURRENCE_YEARLY else None,
            day=day if kind == RECURRENCE_YEARLY else None,
            end_date=end_date,
        )
        rule.validate()
        return rule

    def validate(self):
        if self.kind not in RECURRENCE_KINDS:
            raise ValidationError(f'Invalid recurrence type: {self.kind}', field='recurrenceType')
        if self.kind == RECURRENCE_WEEKLY:
            if not self.weekdays:
                raise ValidationError('Recurrence days are required for weekly recurrence', field='recurrenceDays')
            if any(w not in range(7) for w in self.weekdays):
                raise ValidationError('Invalid weekday in recurrence days', field='recurrenceDays')
        if self.kind in (RECURRENCE_MONTHLY, RECURRENCE_QUARTERLY):
            if self.day_of_month is None or not 1 <= self.day_of_month <= 31:
                raise ValidationError('Day of month must be between 1 and 31', field='dayOfMonth')
        if self.kind == RECURRENCE_YEARLY:
            if self.month is None or not 1 <= self.month <= 12:
                raise ValidationError('Month must be between 1 and 12', field='yearlyDate')
            if self.day is None or not 1 <= self.day <= 31:
                raise ValidationError('Day must be between 1 and 31', field='yearlyDate')
        return self

    def with_end(self, end_date):
        return RecurrenceRule(
            kind=self.kind,
            weekdays=self.weekdays,
            day_of_month=self.day_of_month,
            month=self.month,
            day=self.day,
            end_date=end_date,
        )


def last_day_of_month(year, month):
    return calendar.monthrange(year, month)[1]


def shift_months(value, months, target_day=None):
    """Move a date/datetime by whole months, clamping to the month's last day.

    ``target_day`` is the anchor day-of-month of the series; passing it keeps a
    Jan 31 series on Mar 31 after passing through February.
    """
    target_day = target_day or value.day
    total = value.year * 12 + (value.month - 1) + months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    return value.replace(year=year, month=month, day=min(target_day, last_day_of_month(year, month)))


def advance(value, kind, target_day=None):
    if kind == RECURRENCE_DAILY:
        return value + timedelta(days=1)
    if kind == RECURRENCE_WEEKLY:
        return value + timedelta(days=7)
    if kind in STEP_MONTHS:
        return shift_months(value, STEP_MONTHS[kind], target_day)
    raise ValueError(f'Cannot advance a {kind!r} rule')


def months_between(earlier, later):
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def matches_frequency(rule, day_value):
    """True when the rule is due on ``day_value``.

    Day-of-month rules compare strictly: a rule on the 31st is not due in a
    30-day month.
    """
    if isinstance(day_value, datetime):
        day_value = day_value.date()
    kind = rule.kind
    if kind == RECURRENCE_DAILY:
        return True
    if kind == RECURRENCE_WEEKLY:
        return day_value.weekday() in rule.weekdays
    if kind == RECURRENCE_MONTHLY:
        return day_value.day == rule.day_of_month
    if kind == RECURRENCE_QUARTERLY:
        return day_value.month in QUARTER_MONTHS and day_value.day == rule.day_of_month
    if kind == RECURRENCE_YEARLY:
        return day_value.month == rule.month and day_value.day == rule.day
    return False


def parse_weekday_names(raw):
    """Parse recurrence days given as a list or a JSON-encoded list of names."""
    if raw is None or raw == '':
        return frozenset()
    names = raw
    if isinstance(raw, str):
        try:
            names = json.loads(raw)
        except ValueError:
            raise ValidationError('Invalid recurrence days format', field='recurrenceDays')
    if not isinstance(names, (list, tuple)):
        raise ValidationError('Invalid recurrence days format', field='recurrenceDays')
    weekdays = set()
    for name in names:
        key = str(name or '').strip().lower()
        if key not in WEEKDAY_NAMES:
            raise ValidationError(f'Invalid day name in recurrence days: {name}', field='recurrenceDays')
        weekdays.add(WEEKDAY_NAMES.index(key))
    return frozenset(weekdays)


def format_weekday_names(weekdays):
    if not weekdays:
        return None
    return json.dumps([WEEKDAY_NAMES[w] for w in sorted(weekdays)])


def weekday_from_sunday_index(index):
    return (int(index) - 1) % 7


def weekday_to_sunday_index(weekday):
    return (int(weekday) + 1) % 7
