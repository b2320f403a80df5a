"""Routine due-date matching and streak bookkeeping."""

import logging
from datetime import timedelta

from backend.errors import AlreadyRecordedToday, ValidationError
from backend.recurrence import matches_frequency
from backend.stores import CompletionStore, atomic
from models import COMPLETION_COMPLETED, COMPLETION_SKIPPED

logger = logging.getLogger(__name__)

STREAK_LOOKBACK_DAYS = 365


def is_due(routine, day_value):
    return matches_frequency(routine.rule, day_value)


def routines_due(routines, day_value):
    return [routine for routine in routines if is_due(routine, day_value)]


def compute_streak(rule, is_skippable, as_of, statuses):
    """Streak ending with a completion on ``as_of``.

    ``statuses`` maps earlier calendar days to their recorded status. Days the
    rule is not due on are passed over; a skip on a skippable routine is
    passed over without counting; anything else ends the walk.
    """
    streak = 1
    for offset in range(1, STREAK_LOOKBACK_DAYS + 1):
        check_day = as_of - timedelta(days=offset)
        if not matches_frequency(rule, check_day):
            continue
        status = statuses.get(check_day)
        if status == COMPLETION_COMPLETED:
            streak += 1
        elif status == COMPLETION_SKIPPED and is_skippable:
            continue
        else:
            break
    return streak


def record_completion(routine, day_value, status, completions=None):
    """Record a completion or skip for ``day_value`` and update the streak counters."""
    if status not in (COMPLETION_COMPLETED, COMPLETION_SKIPPED):
        raise ValidationError(f'Invalid completion status: {status}', field='status')
    completions = completions or CompletionStore()
    with atomic():
        if completions.get_for_date(routine.id, day_value) is not None:
            raise AlreadyRecordedToday(routine.id, day_value)
        completions.record(routine, day_value, status)

        if status == COMPLETION_COMPLETED:
            statuses = completions.statuses_between(
                routine.id,
                day_value - timedelta(days=STREAK_LOOKBACK_DAYS),
                day_value - timedelta(days=1),
            )
            routine.current_streak = compute_streak(routine.rule, routine.is_skippable, day_value, statuses)
        elif not routine.is_skippable:
            routine.current_streak = 0
        routine.longest_streak = max(routine.longest_streak or 0, routine.current_streak or 0)

    logger.info(
        "Routine %s %s on %s: current=%s longest=%s",
        routine.id,
        status,
        day_value,
        routine.current_streak,
        routine.longest_streak,
    )
    return routine
