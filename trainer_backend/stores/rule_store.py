"""Availability rule persistence."""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from trainer_backend.core.errors import NotFound
from trainer_backend.models.availability import AvailabilityRule as AvailabilityRuleRow
from trainer_backend.scheduling.entities import (
    AvailabilityRule,
    day_of_week as weekday_number,
    parse_calendar_date,
    require_trainer_id,
    to_rule,
)
from trainer_backend.scheduling.intervals import Interval
from trainer_backend.scheduling.resolver import offered_durations, resolve_availability

logger = logging.getLogger(__name__)


async def list_availability_rules(
    session: AsyncSession,
    trainer_id: str,
    *,
    day_of_week: Optional[int] = None,
    specific_date: Optional[date] = None,
) -> list[AvailabilityRule]:
    """Rules of a trainer. Filters combine with OR, as a date needs both kinds."""
    query = select(AvailabilityRuleRow).where(AvailabilityRuleRow.trainer_id == trainer_id)

    filters = []
    if day_of_week is not None:
        filters.append(and_(AvailabilityRuleRow.is_recurring.is_(True), AvailabilityRuleRow.day_of_week == day_of_week))
    if specific_date is not None:
        filters.append(and_(AvailabilityRuleRow.is_recurring.is_(False), AvailabilityRuleRow.specific_date == specific_date))
    if filters:
        query = query.where(or_(*filters))

    query = query.order_by(
        AvailabilityRuleRow.day_of_week.asc(),
        AvailabilityRuleRow.specific_date.asc(),
        AvailabilityRuleRow.start_time.asc(),
    )
    rows = (await session.execute(query)).scalars().all()
    return [to_rule(row) for row in rows]


async def create_availability_rule(session: AsyncSession, rule: AvailabilityRule) -> AvailabilityRule:
    row = AvailabilityRuleRow(
        trainer_id=rule.trainer_id,
        day_of_week=rule.day_of_week if rule.is_recurring else None,
        specific_date=None if rule.is_recurring else rule.specific_date,
        start_time=rule.start_time,
        end_time=rule.end_time,
        is_recurring=rule.is_recurring,
        is_blocked=rule.is_blocked,
        session_durations=rule.session_durations,
    )
    session.add(row)
    await session.flush()

    logger.info(
        'Availability rule %s added for trainer %s (%s %s-%s%s)',
        row.id,
        row.trainer_id,
        f'day {row.day_of_week}' if row.is_recurring else row.specific_date,
        row.start_time,
        row.end_time,
        ', blocked' if row.is_blocked else '',
    )
    return to_rule(row)


async def delete_availability_rule(session: AsyncSession, rule_id: str, trainer_id: Optional[str] = None) -> None:
    query = select(AvailabilityRuleRow).where(AvailabilityRuleRow.id == rule_id)
    if trainer_id is not None:
        query = query.where(AvailabilityRuleRow.trainer_id == trainer_id)

    row = (await session.execute(query)).scalar_one_or_none()
    if row is None:
        raise NotFound('Availability rule not found.')

    await session.delete(row)
    await session.flush()
    logger.info('Availability rule %s removed for trainer %s', rule_id, row.trainer_id)


async def _rules_for_date(session: AsyncSession, trainer_id: str, on_date: date) -> list[AvailabilityRule]:
    return await list_availability_rules(
        session,
        trainer_id,
        day_of_week=weekday_number(on_date),
        specific_date=on_date,
    )


async def load_availability(
    session: AsyncSession,
    trainer_id: str,
    on_date,
    duration: Optional[int] = None,
) -> list[Interval]:
    trainer_id = require_trainer_id(trainer_id)
    on_date = parse_calendar_date(on_date)
    rules = await _rules_for_date(session, trainer_id, on_date)
    return resolve_availability(trainer_id, on_date, rules, duration)


async def load_offered_durations(session: AsyncSession, trainer_id: str, on_date) -> Optional[list[int]]:
    trainer_id = require_trainer_id(trainer_id)
    on_date = parse_calendar_date(on_date)
    rules = await _rules_for_date(session, trainer_id, on_date)
    return offered_durations(trainer_id, on_date, rules)
