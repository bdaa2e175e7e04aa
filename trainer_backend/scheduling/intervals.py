"""Half-open time-of-day intervals and the set operations the engine needs."""

from datetime import time
from typing import Iterable, NamedTuple


class Interval(NamedTuple):
    """``[start, end)`` within a single day."""

    start: time
    end: time

    @property
    def minutes(self) -> int:
        return to_minutes(self.end) - to_minutes(self.start)


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(total: int) -> time:
    return time(total // 60, total % 60)


def overlaps(first: Interval, second: Interval) -> bool:
    # Touching endpoints do not overlap.
    return first.start < second.end and second.start < first.end


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Union of the given intervals as a sorted list of disjoint intervals.

    Overlapping and adjacent intervals are joined, so ``09:00-12:00`` and
    ``12:00-13:00`` become ``09:00-13:00``.
    """
    merged: list[Interval] = []
    for interval in sorted(intervals):
        if interval.start >= interval.end:
            continue
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged


def subtract_interval(base: Interval, removal: Interval) -> list[Interval]:
    if not overlaps(base, removal):
        return [base]

    pieces: list[Interval] = []
    if base.start < removal.start:
        pieces.append(Interval(base.start, removal.start))
    if removal.end < base.end:
        pieces.append(Interval(removal.end, base.end))
    return pieces


def subtract_intervals(base: Iterable[Interval], removals: Iterable[Interval]) -> list[Interval]:
    remaining = merge_intervals(base)
    for removal in merge_intervals(removals):
        remaining = [piece for interval in remaining for piece in subtract_interval(interval, removal)]
    return remaining
