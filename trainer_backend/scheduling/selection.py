"""The client's step-by-step booking selection, held by the caller."""

import datetime
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from trainer_backend.core.errors import InvalidArgument
from trainer_backend.scheduling.entities import parse_calendar_date, parse_time_of_day


class SelectionStep(IntEnum):
    DATE = 1
    DURATION = 2
    TIME = 3
    REVIEW = 4


class BookingSelection(BaseModel):
    """Immutable ``{date?, duration?, time?}`` state.

    Every transition returns a new selection. Choosing an earlier value
    discards the later ones, since they were picked against it.
    """

    model_config = ConfigDict(frozen=True)

    date: Optional[datetime.date] = None
    duration_minutes: Optional[int] = None
    start_time: Optional[datetime.time] = None

    @property
    def step(self) -> SelectionStep:
        if self.date is None:
            return SelectionStep.DATE
        if self.duration_minutes is None:
            return SelectionStep.DURATION
        if self.start_time is None:
            return SelectionStep.TIME
        return SelectionStep.REVIEW

    @property
    def is_complete(self) -> bool:
        return self.step is SelectionStep.REVIEW

    def select_date(self, value: Any) -> 'BookingSelection':
        return BookingSelection(date=parse_calendar_date(value))

    def select_duration(self, minutes: int) -> 'BookingSelection':
        if self.date is None:
            raise InvalidArgument('Select a date before choosing a duration.')
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise InvalidArgument('Session duration must be a positive number of minutes.')
        return BookingSelection(date=self.date, duration_minutes=minutes)

    def select_time(self, value: Any) -> 'BookingSelection':
        if self.duration_minutes is None:
            raise InvalidArgument('Select a duration before choosing a time.')
        try:
            start_time = parse_time_of_day(value)
        except ValueError as exc:
            raise InvalidArgument(str(exc)) from exc
        return self.model_copy(update={'start_time': start_time})

    def back(self) -> 'BookingSelection':
        step = self.step
        if step is SelectionStep.REVIEW:
            return self.model_copy(update={'start_time': None})
        if step is SelectionStep.TIME:
            return BookingSelection(date=self.date)
        return BookingSelection()

    def reset(self) -> 'BookingSelection':
        return BookingSelection()
