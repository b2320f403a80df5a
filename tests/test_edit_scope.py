from datetime import date, datetime

import pytest

from backend.edit_scope import apply_delete, apply_edit
from backend.errors import ConflictError, InvalidScopeError, NotFoundError, ValidationError
from backend.occurrences import expand_occurrences
from backend.stores import EventStore, ExceptionStore
from models import Event, EventException, db


def create_event(user, **fields):
    values = dict(
        title='Standup',
        start_date=datetime(2024, 1, 1, 9, 0),
        end_date=datetime(2024, 1, 1, 9, 30),
        all_day=False,
        domain='Work',
        recurrence_type='daily',
        hide_from_agenda=False,
    )
    values.update(fields)
    event = Event(user_id=user.id, **values)
    db.session.add(event)
    db.session.commit()
    return event


def window(user, start, end):
    return expand_occurrences(EventStore(), ExceptionStore(), user.id, start, end)


def test_edit_this_stores_only_changed_fields(user):
    event = create_event(user)
    result = apply_edit(event.id, user.id, 'this', date(2024, 1, 3), {
        'title': 'Planning',
        'start_date': datetime(2024, 1, 3, 9, 0),
        'end_date': datetime(2024, 1, 3, 9, 30),
        'domain': 'Work',
    })
    exc = result.exception
    assert exc.kind == 'modified'
    assert exc.original_date == date(2024, 1, 3)
    assert exc.modified_title == 'Planning'
    assert exc.modified_start is None
    assert exc.modified_end is None
    assert exc.modified_domain is None

    occurrences = window(user, datetime(2024, 1, 1), datetime(2024, 1, 4, 23, 59))
    assert [o.title for o in occurrences] == ['Standup', 'Standup', 'Planning', 'Standup']
    assert db.session.get(Event, event.id).title == 'Standup'


def test_edit_this_twice_keeps_last_write(user):
    event = create_event(user)
    apply_edit(event.id, user.id, 'this', date(2024, 1, 2), {'title': 'First'})
    apply_edit(event.id, user.id, 'this', date(2024, 1, 2), {'start_date': datetime(2024, 1, 2, 15, 0)})
    rows = EventException.query.filter_by(event_id=event.id).all()
    assert len(rows) == 1
    assert rows[0].modified_title is None
    assert rows[0].modified_start == datetime(2024, 1, 2, 15, 0)


def test_edit_this_back_to_original_values_removes_exception(user):
    event = create_event(user)
    apply_edit(event.id, user.id, 'this', date(2024, 1, 2), {'title': 'Other'})
    result = apply_edit(event.id, user.id, 'this', date(2024, 1, 2), {'title': 'Standup'})
    assert result.exception is None
    assert EventException.query.filter_by(event_id=event.id).count() == 0


def test_this_scope_on_non_recurring_event_is_rejected(user):
    event = create_event(user, recurrence_type=None)
    with pytest.raises(InvalidScopeError):
        apply_edit(event.id, user.id, 'this', date(2024, 1, 1), {'title': 'Nope'})
    with pytest.raises(InvalidScopeError):
        apply_delete(event.id, user.id, 'following', date(2024, 1, 1))


def test_all_scope_works_on_non_recurring_event(user):
    event = create_event(user, recurrence_type=None, title='Dentist')
    result = apply_edit(event.id, user.id, 'all', None, {'title': 'Dentist (moved)'})
    assert result.scope == 'all'
    assert db.session.get(Event, event.id).title == 'Dentist (moved)'

    assert apply_delete(event.id, user.id, 'all', None).deleted
    assert Event.query.count() == 0


def test_unknown_scope_is_rejected(user):
    event = create_event(user)
    with pytest.raises(InvalidScopeError):
        apply_edit(event.id, user.id, 'everything', None, {})


def test_this_scope_requires_a_real_occurrence_date(user):
    event = create_event(user, recurrence_type='weekly', recurrence_days='["monday"]')
    with pytest.raises(ValidationError) as missing:
        apply_edit(event.id, user.id, 'this', None, {'title': 'x'})
    assert missing.value.field == 'occurrenceDate'
    with pytest.raises(ValidationError):
        apply_edit(event.id, user.id, 'this', date(2024, 1, 2), {'title': 'x'})  # a Tuesday


def test_edit_following_splits_series(user):
    event = create_event(user, recurrence_end=date(2024, 1, 31))
    result = apply_edit(event.id, user.id, 'following', date(2024, 1, 10), {
        'title': 'Late standup',
        'start_date': datetime(2024, 1, 10, 10, 0),
        'end_date': datetime(2024, 1, 10, 10, 45),
    })
    old = db.session.get(Event, event.id)
    new = result.created
    assert old.recurrence_end == date(2024, 1, 9)
    assert new.id != old.id
    assert new.start_date == datetime(2024, 1, 10, 10, 0)
    assert new.end_date == datetime(2024, 1, 10, 10, 45)
    assert new.recurrence_type == 'daily'
    assert new.recurrence_end == date(2024, 1, 31)

    occurrences = window(user, datetime(2024, 1, 8), datetime(2024, 1, 11, 23, 59))
    assert [(o.definition_id, o.title, o.start) for o in occurrences] == [
        (old.id, 'Standup', datetime(2024, 1, 8, 9, 0)),
        (old.id, 'Standup', datetime(2024, 1, 9, 9, 0)),
        (new.id, 'Late standup', datetime(2024, 1, 10, 10, 0)),
        (new.id, 'Late standup', datetime(2024, 1, 11, 10, 0)),
    ]


def test_edit_following_drops_exceptions_after_split(user):
    event = create_event(user)
    apply_delete(event.id, user.id, 'this', date(2024, 1, 3))
    apply_delete(event.id, user.id, 'this', date(2024, 1, 12))
    apply_edit(event.id, user.id, 'following', date(2024, 1, 10), {'title': 'Renamed'})
    remaining = [exc.original_date for exc in ExceptionStore().find_by_definition(event.id)]
    assert remaining == [date(2024, 1, 3)]


def test_edit_following_from_first_occurrence_rewrites_series(user):
    event = create_event(user)
    result = apply_edit(event.id, user.id, 'following', date(2024, 1, 1), {'title': 'Renamed'})
    assert result.scope == 'all'
    assert result.created is None
    assert Event.query.count() == 1
    assert db.session.get(Event, event.id).title == 'Renamed'


def test_edit_all_keeps_exceptions(user):
    event = create_event(user)
    apply_edit(event.id, user.id, 'this', date(2024, 1, 2), {'title': 'Special'})
    apply_edit(event.id, user.id, 'all', None, {'title': 'Daily sync'})
    titles = [o.title for o in window(user, datetime(2024, 1, 1), datetime(2024, 1, 3, 23, 59))]
    assert titles == ['Daily sync', 'Special', 'Daily sync']


def test_edit_all_validates_result(user):
    event = create_event(user)
    with pytest.raises(ValidationError):
        apply_edit(event.id, user.id, 'all', None, {'end_date': datetime(2023, 12, 31, 9, 0)})
    assert db.session.get(Event, event.id).end_date == datetime(2024, 1, 1, 9, 30)


def test_delete_scopes(user):
    event = create_event(user)
    apply_delete(event.id, user.id, 'this', date(2024, 1, 2))
    starts = [o.start.day for o in window(user, datetime(2024, 1, 1), datetime(2024, 1, 4, 23, 59))]
    assert starts == [1, 3, 4]

    apply_delete(event.id, user.id, 'following', date(2024, 1, 4))
    assert db.session.get(Event, event.id).recurrence_end == date(2024, 1, 3)
    starts = [o.start.day for o in window(user, datetime(2024, 1, 1), datetime(2024, 1, 31))]
    assert starts == [1, 3]

    result = apply_delete(event.id, user.id, 'all', None)
    assert result.deleted
    assert Event.query.count() == 0
    assert EventException.query.count() == 0


def test_delete_following_from_first_occurrence_removes_series(user):
    event = create_event(user)
    result = apply_delete(event.id, user.id, 'following', date(2024, 1, 1))
    assert result.deleted
    assert Event.query.count() == 0


def test_other_users_event_is_not_found(user, other_user):
    event = create_event(user)
    with pytest.raises(NotFoundError):
        apply_edit(event.id, other_user.id, 'all', None, {'title': 'Mine now'})
    with pytest.raises(NotFoundError):
        apply_delete(event.id, other_user.id, 'all', None)


def test_stale_version_is_a_conflict(user):
    event = create_event(user)
    version = event.version
    apply_edit(event.id, user.id, 'all', None, {'title': 'Changed'}, expected_version=version)
    with pytest.raises(ConflictError):
        apply_edit(event.id, user.id, 'all', None, {'title': 'Lost update'}, expected_version=version)
    assert db.session.get(Event, event.id).title == 'Changed'


def test_split_of_monthly_series_keeps_day_of_month(user):
    event = create_event(
        user,
        title='Rent',
        start_date=datetime(2024, 1, 31, 9, 0),
        end_date=datetime(2024, 1, 31, 9, 30),
        recurrence_type='monthly',
    )
    result = apply_edit(event.id, user.id, 'following', date(2024, 4, 30), {'title': 'Rent v2'})
    assert result.created.start_date == datetime(2024, 4, 30, 9, 0)
    assert result.created.recurrence_anchor_day == 31

    occurrences = window(user, datetime(2024, 1, 1), datetime(2024, 8, 31, 23, 59))
    assert [(o.title, o.original_date.isoformat()) for o in occurrences] == [
        ('Rent', '2024-01-31'),
        ('Rent', '2024-02-29'),
        ('Rent', '2024-03-31'),
        ('Rent v2', '2024-04-30'),
        ('Rent v2', '2024-05-31'),
        ('Rent v2', '2024-06-30'),
        ('Rent v2', '2024-07-31'),
        ('Rent v2', '2024-08-31'),
    ]
    # the later dates are real occurrences of the new series
    apply_edit(result.created.id, user.id, 'this', date(2024, 5, 31), {'title': 'Rent (late)'})


def test_split_of_leap_day_series_returns_to_feb_29(user):
    event = create_event(
        user,
        title='Leap party',
        start_date=datetime(2024, 2, 29, 18, 0),
        end_date=datetime(2024, 2, 29, 22, 0),
        recurrence_type='yearly',
    )
    result = apply_edit(event.id, user.id, 'following', date(2025, 2, 28), {'title': 'Leap party v2'})
    occurrences = window(user, datetime(2025, 1, 1), datetime(2028, 12, 31))
    assert [o.original_date for o in occurrences] == [
        date(2025, 2, 28), date(2026, 2, 28), date(2027, 2, 28), date(2028, 2, 29),
    ]
    assert {o.definition_id for o in occurrences} == {result.created.id}


def test_split_with_new_kind_drops_anchor(user):
    event = create_event(user, start_date=datetime(2024, 1, 31, 9, 0), end_date=None, recurrence_type='monthly')
    result = apply_edit(event.id, user.id, 'following', date(2024, 4, 30), {'recurrence_type': 'daily'})
    assert result.created.recurrence_anchor_day is None


def test_moving_series_start_day_resets_anchor(user):
    event = create_event(
        user,
        start_date=datetime(2024, 1, 31, 9, 0),
        end_date=datetime(2024, 1, 31, 9, 30),
        recurrence_type='monthly',
    )
    split = apply_edit(event.id, user.id, 'following', date(2024, 4, 30), {'title': 'Review'}).created
    apply_edit(split.id, user.id, 'all', None, {'start_date': datetime(2024, 5, 15, 9, 0)})
    moved = db.session.get(Event, split.id)
    assert moved.recurrence_anchor_day is None
    assert moved.end_date == datetime(2024, 5, 15, 9, 30)
    starts = [o.start for o in window(user, datetime(2024, 5, 1), datetime(2024, 6, 30, 23, 59))]
    assert starts == [datetime(2024, 5, 15, 9, 0), datetime(2024, 6, 15, 9, 0)]
