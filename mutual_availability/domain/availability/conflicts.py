"""
Conflict filtering for candidate slots.

A candidate is dropped when it starts before the minimum-notice cutoff, when
it strictly overlaps a merged busy interval, or when it strictly overlaps a
recurring commitment on the same weekday. Touching an obstruction (sharing
an endpoint) is not a conflict.
"""

from datetime import datetime, timedelta
from typing import Optional

from .schemas import BusyInterval, RecurringCommitment, SchedulingPreferences, Slot, Weekday


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """Strict overlap: ranges that only share an endpoint do not overlap"""
    return max(a_start, b_start) < min(a_end, b_end)


def _minutes_into_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def conflicts_with_busy(slot: Slot, busy_intervals: list[BusyInterval]) -> bool:
    """Order of `busy_intervals` does not matter"""
    return any(overlaps(slot.start, slot.end, busy.start, busy.end) for busy in busy_intervals)


def conflicts_with_commitments(slot: Slot, commitments: list[RecurringCommitment]) -> bool:
    """Commitments match by weekday and minute-of-day, never by absolute date"""
    weekday = Weekday.from_date(slot.start.date())
    slot_start = _minutes_into_day(slot.start)
    slot_end = slot_start + int((slot.end - slot.start).total_seconds() // 60)
    return any(
        commitment.weekday == weekday
        and overlaps(slot_start, slot_end, commitment.start_minutes, commitment.end_minutes)
        for commitment in commitments
    )


def notice_cutoff(now: datetime, minimum_advance_notice_hours: int) -> datetime:
    return now + timedelta(hours=minimum_advance_notice_hours)


def filter_slots(
    candidates: list[Slot],
    merged_busy: list[BusyInterval],
    commitments: list[RecurringCommitment],
    now: datetime,
    minimum_advance_notice_hours: int,
    maximum_advance_days: Optional[int] = None,
) -> list[Slot]:
    """Drop candidates that are too soon, too far out, busy, or committed"""
    cutoff = notice_cutoff(now, minimum_advance_notice_hours)
    horizon = now + timedelta(days=maximum_advance_days) if maximum_advance_days else None

    kept = []
    for slot in candidates:
        if slot.start < cutoff:
            continue
        if horizon is not None and slot.start > horizon:
            continue
        if conflicts_with_busy(slot, merged_busy):
            continue
        if conflicts_with_commitments(slot, commitments):
            continue
        kept.append(slot)
    return kept


def fits_preferences(slot: Slot, preferences: SchedulingPreferences) -> bool:
    """
    Whether a slot sits fully inside one of the preference windows for its
    weekday and clears that side's recurring commitments.

    Used to intersect one party's candidates with another party's
    preferences.
    """
    windows = preferences.windows_for(Weekday.from_date(slot.start.date()))
    slot_start = _minutes_into_day(slot.start)
    slot_end = slot_start + int((slot.end - slot.start).total_seconds() // 60)
    inside = any(w.start_minutes <= slot_start and slot_end <= w.end_minutes for w in windows)
    if not inside:
        return False
    return not conflicts_with_commitments(slot, preferences.recurring_commitments)
