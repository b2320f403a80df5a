"""Routine validation, "due today" listing and complete/skip handling."""

import logging

from backend.errors import NotFoundError, ValidationError
from backend.streaks import record_completion, routines_due
from backend.stores import CompletionStore
from models import COMPLETION_COMPLETED, COMPLETION_SKIPPED, Routine
from services.validation_service import parse_bool, parse_int, parse_time_str, require_choice

logger = logging.getLogger(__name__)

FREQUENCY_FIELDS = ('weekday', 'day_of_month', 'quarterly_day', 'yearly_month', 'yearly_day')


def _ranged_int(data, key, low, high, label):
    value = parse_int(data.get(key))
    if value is None:
        return None
    if not low <= value <= high:
        raise ValidationError(f'{label} must be between {low} and {high}', field=key)
    return value


def parse_routine_payload(data, frequencies, time_types, routine=None):
    """Validate a routine body against the current state and return attribute values."""
    values = {}
    if 'title' in data or routine is None:
        title = str(data.get('title') or '').strip()
        if not title:
            raise ValidationError('Title is required', field='title')
        values['title'] = title

    frequency = data.get('frequency', routine.frequency if routine else None)
    require_choice(frequency, frequencies, 'frequency')
    values['frequency'] = frequency

    for key in FREQUENCY_FIELDS:
        values[key] = None
    # Keep stored frequency fields when the frequency itself is unchanged.
    merged = routine.to_dict() if routine is not None and frequency == routine.frequency else {}
    merged.update(data)

    if frequency == 'Weekly':
        weekday = _ranged_int(merged, 'weekday', 0, 6, 'weekday (0=Sunday)')
        if weekday is None:
            raise ValidationError('weekday is required for Weekly frequency', field='weekday')
        values['weekday'] = weekday
    elif frequency == 'Monthly':
        day_of_month = _ranged_int(merged, 'dayOfMonth', 1, 31, 'dayOfMonth')
        if day_of_month is None:
            raise ValidationError('dayOfMonth is required for Monthly frequency', field='dayOfMonth')
        values['day_of_month'] = day_of_month
    elif frequency == 'Quarterly':
        quarterly_day = _ranged_int(merged, 'quarterlyDay', 1, 31, 'quarterlyDay')
        if quarterly_day is None:
            raise ValidationError('quarterlyDay is required for Quarterly frequency', field='quarterlyDay')
        values['quarterly_day'] = quarterly_day
    elif frequency == 'Yearly':
        yearly = merged.get('yearlyDate')
        if not isinstance(yearly, dict):
            raise ValidationError('yearlyDate is required for Yearly frequency', field='yearlyDate')
        values['yearly_month'] = _ranged_int(yearly, 'month', 1, 12, 'yearlyDate.month')
        values['yearly_day'] = _ranged_int(yearly, 'day', 1, 31, 'yearlyDate.day')
        if values['yearly_month'] is None or values['yearly_day'] is None:
            raise ValidationError('yearlyDate needs a month and a day', field='yearlyDate')

    time_type = data.get('timeType', routine.time_type if routine else 'AllDay')
    require_choice(time_type, time_types, 'timeType')
    values['time_type'] = time_type
    values['specific_time'] = None
    if time_type == 'Specific':
        raw_time = data.get('specificTime', routine.specific_time if routine else None)
        parsed = parse_time_str(raw_time)
        if parsed is None:
            raise ValidationError('specificTime (HH:MM) is required when timeType is Specific', field='specificTime')
        values['specific_time'] = parsed.strftime('%H:%M')

    if 'isSkippable' in data or routine is None:
        values['is_skippable'] = parse_bool(data.get('isSkippable'))
    if 'showStreak' in data or routine is None:
        values['show_streak'] = parse_bool(data.get('showStreak'))
    return values


def get_routine(routine_id, user_id):
    routine = Routine.query.filter_by(id=routine_id, user_id=user_id).first()
    if routine is None:
        raise NotFoundError('Routine not found')
    return routine


def todays_routines(user, today):
    """Routines due today, each with the status already recorded for the day."""
    routines = Routine.query.filter_by(user_id=user.id).order_by(Routine.created_at.asc(), Routine.id.asc()).all()
    completions = CompletionStore()
    result = []
    for routine in routines_due(routines, today):
        data = routine.to_dict()
        record = completions.get_for_date(routine.id, today)
        data['todayStatus'] = record.status if record else None
        result.append(data)
    return result


def complete_routine(routine_id, user, today):
    routine = get_routine(routine_id, user.id)
    return record_completion(routine, today, COMPLETION_COMPLETED)


def skip_routine(routine_id, user, today):
    routine = get_routine(routine_id, user.id)
    return record_completion(routine, today, COMPLETION_SKIPPED)
