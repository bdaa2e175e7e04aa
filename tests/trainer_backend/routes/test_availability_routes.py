import asyncio
from datetime import date, datetime, time

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from conftest import add_rows, booking_row, profile_row, rule_row
from trainer_backend.routes import availability_routes
from trainer_backend.routes.availability_routes import (
    CreateAvailabilityRuleRequest,
    create_rule,
    list_bookable_dates,
    list_open_windows,
    list_rules,
    list_session_durations,
    list_slots,
    list_trainer_session_durations,
    remove_rule,
    validate_lookahead,
)
from trainer_backend.scheduling.slots import SlotState

MONDAY = date(2026, 1, 5)


def call(factory, route, **kwargs):
    async def run():
        async with factory() as session:
            return await route(db=session, **kwargs)

    return asyncio.run(run())


def test_create_rule_request_accepts_database_time_strings() -> None:
    request = CreateAvailabilityRuleRequest(day_of_week=1, start_time='09:00:00', end_time='17:00')

    assert request.start_time == time(9, 0)
    assert request.end_time == time(17, 0)


@pytest.mark.parametrize(
    'fields',
    [
        {'day_of_week': 1, 'start_time': '17:00', 'end_time': '09:00'},
        {'day_of_week': 9, 'start_time': '09:00', 'end_time': '10:00'},
        {'start_time': '09:00', 'end_time': '10:00'},
        {'is_recurring': False, 'start_time': '09:00', 'end_time': '10:00'},
    ],
)
def test_create_rule_request_rejects_malformed_rules(fields: dict) -> None:
    with pytest.raises(ValidationError):
        CreateAvailabilityRuleRequest(**fields)


def test_durations_list_presets_and_bounds() -> None:
    options = list_session_durations()

    assert options.presets == [30, 60, 90, 120]
    assert (options.min_minutes, options.max_minutes) == (15, 180)


@pytest.mark.parametrize('days', [0, 61])
def test_validate_lookahead_rejects_out_of_range(days: int) -> None:
    with pytest.raises(HTTPException) as exception_info:
        validate_lookahead(days)

    assert exception_info.value.status_code == 400


def test_trainer_can_add_list_and_remove_rules(session_factory) -> None:
    trainer = profile_row('trainer-1', 'trainer')
    asyncio.run(add_rows(session_factory, trainer))

    created = call(
        session_factory,
        create_rule,
        data=CreateAvailabilityRuleRequest(day_of_week=1, start_time='09:00', end_time='12:00'),
        trainer=trainer,
    )
    assert created.trainer_id == 'trainer-1'

    rules = call(session_factory, list_rules, trainer_id='trainer-1')
    assert [rule.id for rule in rules] == [created.id]

    call(session_factory, remove_rule, rule_id=created.id, trainer=trainer)
    assert call(session_factory, list_rules, trainer_id='trainer-1') == []


def test_removing_another_trainers_rule_is_not_found(session_factory) -> None:
    asyncio.run(add_rows(session_factory, rule_row('09:00', '12:00', trainer_id='trainer-2')))
    rule_id = call(session_factory, list_rules, trainer_id='trainer-2')[0].id

    with pytest.raises(HTTPException) as exception_info:
        call(session_factory, remove_rule, rule_id=rule_id, trainer=profile_row('trainer-1', 'trainer'))

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Availability rule not found.'


def test_windows_subtract_blocks(session_factory) -> None:
    asyncio.run(add_rows(
        session_factory,
        rule_row('09:00', '17:00'),
        rule_row('12:00', '13:00', is_blocked=True),
    ))

    windows = call(session_factory, list_open_windows, trainer_id='trainer-1', on_date=MONDAY)

    assert [(window.start_time, window.end_time) for window in windows] == [
        (time(9, 0), time(12, 0)),
        (time(13, 0), time(17, 0)),
    ]


def test_slots_hide_confirmed_and_flag_requested_times(session_factory) -> None:
    asyncio.run(add_rows(
        session_factory,
        rule_row('09:00', '12:00'),
        booking_row('held', '09:00', '10:00', status='confirmed'),
        booking_row('asked', '11:00', '12:00'),
    ))

    slots = call(session_factory, list_slots, trainer_id='trainer-1', on_date=MONDAY, duration=60)

    assert [(slot.start_time, slot.state, slot.is_requested) for slot in slots] == [
        (time(10, 0), SlotState.OPEN, False),
        (time(10, 15), SlotState.REQUESTED, True),
        (time(10, 30), SlotState.REQUESTED, True),
        (time(10, 45), SlotState.REQUESTED, True),
        (time(11, 0), SlotState.REQUESTED, True),
    ]


def test_slots_reject_non_positive_duration(session_factory) -> None:
    asyncio.run(add_rows(session_factory, rule_row('09:00', '12:00')))

    with pytest.raises(HTTPException) as exception_info:
        call(session_factory, list_slots, trainer_id='trainer-1', on_date=MONDAY, duration=-5)

    assert exception_info.value.status_code == 400


def test_bookable_dates_start_tomorrow(session_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    class FrozenDateTime:
        @staticmethod
        def now():
            return datetime(2026, 1, 4, 18, 0)

    monkeypatch.setattr(availability_routes, 'datetime', FrozenDateTime)
    asyncio.run(add_rows(
        session_factory,
        rule_row('09:00', '12:00', day_of_week=0),
        rule_row('09:00', '12:00', day_of_week=1),
    ))

    # Sunday the 4th is today, so the Sunday rule only shows up a week later.
    dates = call(session_factory, list_bookable_dates, trainer_id='trainer-1', days=6)

    assert dates == [MONDAY]


def test_database_errors_become_service_unavailable(session_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    async def broken_list(session, trainer_id, **kwargs):
        raise OperationalError('SELECT', {}, Exception('connection refused'))

    monkeypatch.setattr(availability_routes.rule_store, 'list_availability_rules', broken_list)

    with pytest.raises(HTTPException) as exception_info:
        call(session_factory, list_rules, trainer_id='trainer-1')

    assert exception_info.value.status_code == 503
    assert exception_info.value.detail == availability_routes.DATABASE_UNAVAILABLE_DETAIL


def test_trainer_durations_follow_the_days_rules(session_factory) -> None:
    asyncio.run(add_rows(
        session_factory,
        rule_row('09:00', '12:00', session_durations=[30, 60]),
        rule_row('14:00', '16:00', session_durations=[90]),
        rule_row('09:00', '12:00', day_of_week=2),
    ))

    monday = call(session_factory, list_trainer_session_durations, trainer_id='trainer-1', on_date=MONDAY)
    tuesday = call(session_factory, list_trainer_session_durations, trainer_id='trainer-1', on_date=date(2026, 1, 6))

    assert (monday.presets, monday.min_minutes, monday.max_minutes, monday.custom_allowed) == ([30, 60, 90], 30, 90, False)
    assert tuesday.presets == [30, 60, 90, 120]
    assert tuesday.custom_allowed


def test_slots_skip_windows_without_the_requested_length(session_factory) -> None:
    asyncio.run(add_rows(
        session_factory,
        rule_row('09:00', '10:00', session_durations=[30]),
        rule_row('13:00', '14:00'),
    ))

    slots = call(session_factory, list_slots, trainer_id='trainer-1', on_date=MONDAY, duration=60)

    assert [slot.start_time for slot in slots] == [time(13, 0)]


def test_create_rule_request_checks_session_lengths() -> None:
    request = CreateAvailabilityRuleRequest(day_of_week=1, start_time='09:00', end_time='12:00', session_durations=[60, 30])
    assert request.session_durations == [30, 60]

    with pytest.raises(ValidationError):
        CreateAvailabilityRuleRequest(day_of_week=1, start_time='09:00', end_time='12:00', session_durations=[240])
