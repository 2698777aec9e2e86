"""Slot desirability rating"""

from datetime import timedelta

from ...config import EXCELLENT_MIN_DURATION_MINUTES, GOOD_MIN_DURATION_MINUTES, RATING_BUFFER_MINUTES
from .conflicts import overlaps
from .schemas import BusyInterval, Rating, Slot


def has_clear_buffer(slot: Slot, merged_busy: list[BusyInterval], buffer_minutes: int = RATING_BUFFER_MINUTES) -> bool:
    """
    True when no busy interval ends within `buffer_minutes` before the slot
    or begins within `buffer_minutes` after it.

    The slot is padded on both sides and checked with the same strict overlap
    rule as conflict filtering, so busy time ending exactly `buffer_minutes`
    before the slot still counts as clear.
    """
    pad = timedelta(minutes=buffer_minutes)
    padded_start = slot.start - pad
    padded_end = slot.end + pad
    return not any(overlaps(padded_start, padded_end, b.start, b.end) for b in merged_busy)


def rate(slot: Slot, merged_busy: list[BusyInterval]) -> Rating:
    """Rate one slot against that day's merged busy intervals"""
    duration = (slot.end - slot.start).total_seconds() / 60
    clear = has_clear_buffer(slot, merged_busy)

    if duration >= EXCELLENT_MIN_DURATION_MINUTES and clear:
        return Rating.EXCELLENT
    if duration >= GOOD_MIN_DURATION_MINUTES or clear:
        return Rating.GOOD
    return Rating.FAIR
