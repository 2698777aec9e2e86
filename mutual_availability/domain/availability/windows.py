"""Candidate slot generation from per-weekday preference windows"""

from datetime import date, datetime, timedelta
from functools import lru_cache

from ...config import SLOT_STEP_MINUTES
from .schemas import DayPreference, Slot, TimeOfDayWindow, Weekday


@lru_cache(maxsize=256)
def _slot_offsets(
    windows: tuple[TimeOfDayWindow, ...], duration_minutes: int, step_minutes: int
) -> tuple[tuple[int, int], ...]:
    """Minute-of-day (start, end) pairs for one weekday's windows"""
    offsets = []
    for window in windows:
        slot_start = window.start_minutes
        while slot_start + duration_minutes <= window.end_minutes:
            offsets.append((slot_start, slot_start + duration_minutes))
            slot_start += step_minutes
    return tuple(offsets)


def windows_by_weekday(day_preferences: list[DayPreference]) -> dict[Weekday, tuple[TimeOfDayWindow, ...]]:
    by_weekday: dict[Weekday, list[TimeOfDayWindow]] = {}
    for pref in day_preferences:
        by_weekday.setdefault(pref.weekday, []).extend(pref.windows)
    return {weekday: tuple(windows) for weekday, windows in by_weekday.items()}


def generate_for_day(
    day: date,
    windows: tuple[TimeOfDayWindow, ...],
    duration_minutes: int,
    step_minutes: int = SLOT_STEP_MINUTES,
) -> list[Slot]:
    midnight = datetime.combine(day, datetime.min.time())
    return [
        Slot(midnight + timedelta(minutes=start), midnight + timedelta(minutes=end))
        for start, end in _slot_offsets(windows, duration_minutes, step_minutes)
    ]


def generate(
    start_date: date,
    end_date: date,
    day_preferences: list[DayPreference],
    duration_minutes: int,
    step_minutes: int = SLOT_STEP_MINUTES,
) -> dict[date, list[Slot]]:
    """
    Expand preference windows into fixed-duration candidate slots.

    Walks every day in [start_date, end_date] inclusive. Within each window a
    slot is emitted every `step_minutes` while it still ends inside the
    window. Busy data is not consulted here. Overlapping windows are not
    deduplicated. Days without a preference, or whose windows are too short
    for a single slot, are left out of the mapping.
    """
    by_weekday = windows_by_weekday(day_preferences)
    candidates: dict[date, list[Slot]] = {}

    day = start_date
    while day <= end_date:
        windows = by_weekday.get(Weekday.from_date(day))
        if windows:
            slots = generate_for_day(day, windows, duration_minutes, step_minutes)
            if slots:
                candidates[day] = slots
        day += timedelta(days=1)
    return candidates
