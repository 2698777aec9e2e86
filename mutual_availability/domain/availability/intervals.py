"""
Busy-interval merging.

Intervals from any number of providers and users are collapsed into a
minimal, sorted, non-overlapping list. Touching intervals are merged too,
so the output never contains two intervals sharing an endpoint.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable

from .schemas import BusyInterval, Slot


def _sort_key(interval: BusyInterval):
    return (interval.start, interval.end, interval.source_id, interval.label or "")


def _combine(current: BusyInterval, following: BusyInterval) -> BusyInterval:
    sources = sorted(
        {part for source in (current.source_id, following.source_id) for part in source.split(",") if part}
    )
    return BusyInterval(
        start=current.start,
        end=max(current.end, following.end),
        label=current.label if current.label == following.label else None,
        all_day=current.all_day or following.all_day,
        source_id=",".join(sources),
    )


def merge(intervals: Iterable[BusyInterval]) -> list[BusyInterval]:
    """
    Merge possibly-overlapping busy intervals.

    Zero and negative length intervals are dropped. Two intervals merge when
    the next one starts at or before the current one's end. Output order does
    not depend on input order, and merge(merge(x)) == merge(x).
    """
    ordered = sorted((i for i in intervals if i.is_valid), key=_sort_key)
    if not ordered:
        return []

    merged: list[BusyInterval] = []
    current = ordered[0]
    for interval in ordered[1:]:
        if interval.start <= current.end:
            current = _combine(current, interval)
        else:
            merged.append(current)
            current = interval
    merged.append(current)
    return merged


def group_by_day(intervals: Iterable[BusyInterval]) -> dict[date, list[BusyInterval]]:
    """
    Bucket intervals under every calendar day they touch.

    An interval crossing midnight (or an all-day block spanning several days)
    is listed under each day it covers, unclipped.
    """
    by_day: dict[date, list[BusyInterval]] = defaultdict(list)
    for interval in intervals:
        if not interval.is_valid:
            continue
        day = interval.start.date()
        while datetime.combine(day, datetime.min.time()) < interval.end:
            by_day[day].append(interval)
            day += timedelta(days=1)
    return dict(by_day)


def merge_by_day(intervals: Iterable[BusyInterval]) -> dict[date, list[BusyInterval]]:
    """Group intervals by day, then merge each day's bucket"""
    return {day: merge(bucket) for day, bucket in group_by_day(intervals).items()}


def find_gaps(window_start: datetime, window_end: datetime, merged_busy: list[BusyInterval]) -> list[Slot]:
    """
    Free stretches inside [window_start, window_end) not covered by busy time.

    `merged_busy` must already be merged (sorted, non-overlapping).
    """
    gaps: list[Slot] = []
    cursor = window_start
    for busy in merged_busy:
        if busy.end <= cursor:
            continue
        if busy.start >= window_end:
            break
        if busy.start > cursor:
            gaps.append(Slot(cursor, busy.start))
        cursor = max(cursor, busy.end)
    if cursor < window_end:
        gaps.append(Slot(cursor, window_end))
    return gaps
