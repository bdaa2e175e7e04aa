"""Availability resolution: which parts of a day a trainer can be booked."""

from datetime import date, timedelta
from typing import Any, Iterable, Optional

from trainer_backend.scheduling.entities import (
    AvailabilityRule,
    parse_calendar_date,
    require_trainer_id,
)
from trainer_backend.scheduling.intervals import Interval, merge_intervals, subtract_intervals


def matching_rules(trainer_id: str, on_date: date, rules: Iterable[AvailabilityRule]) -> list[AvailabilityRule]:
    return [rule for rule in rules if rule.trainer_id == trainer_id and rule.applies_to(on_date)]


def offers(rule: AvailabilityRule, duration: Optional[int]) -> bool:
    return duration is None or rule.session_durations is None or duration in rule.session_durations


def offered_durations(trainer_id: Any, on_date: Any, rules: Iterable[AvailabilityRule]) -> Optional[list[int]]:
    """Session lengths the trainer lists for the date, or None when any length goes."""
    trainer_id = require_trainer_id(trainer_id)
    on_date = parse_calendar_date(on_date)

    durations: set[int] = set()
    for rule in matching_rules(trainer_id, on_date, rules):
        if rule.is_blocked:
            continue
        if rule.session_durations is None:
            return None
        durations.update(rule.session_durations)
    return sorted(durations) if durations else None


def resolve_availability(
    trainer_id: Any,
    on_date: Any,
    rules: Iterable[AvailabilityRule],
    duration: Optional[int] = None,
) -> list[Interval]:
    """Open intervals for ``trainer_id`` on ``on_date``, disjoint and ascending.

    Additive rules for the date (the weekday's recurring rules and the date's
    one-off rules) are merged, then every blocked rule for the date is cut
    out. Blocks always win, whether recurring or date-specific.

    With ``duration``, windows whose rule lists other session lengths are left
    out. Rules without a list offer every length.
    """
    trainer_id = require_trainer_id(trainer_id)
    on_date = parse_calendar_date(on_date)

    additive: list[Interval] = []
    blocked: list[Interval] = []
    for rule in matching_rules(trainer_id, on_date, rules):
        if rule.is_blocked:
            blocked.append(rule.interval)
        elif offers(rule, duration):
            additive.append(rule.interval)

    return subtract_intervals(merge_intervals(additive), blocked)


def available_dates(
    trainer_id: Any,
    rules: Iterable[AvailabilityRule],
    start: Any,
    days: int,
) -> list[date]:
    """Dates in ``[start, start + days)`` with at least one open interval."""
    if days <= 0:
        return []

    trainer_id = require_trainer_id(trainer_id)
    start = parse_calendar_date(start)
    trainer_rules = [rule for rule in rules if rule.trainer_id == trainer_id]

    bookable: list[date] = []
    for offset in range(days):
        candidate = start + timedelta(days=offset)
        if resolve_availability(trainer_id, candidate, trainer_rules):
            bookable.append(candidate)
    return bookable
