"""
Availability service - the mutual-availability orchestrator.

A request moves through Validating -> FetchingBusyData -> Merging ->
GeneratingCandidates -> Filtering -> Rating -> Done. Validation failures end
the request before any provider is contacted. Only the fetch stage does I/O
and only it runs concurrently; every later stage is a pure computation over
the fetched values.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Optional, Protocol

from ...config import (
    DEFAULT_BUSINESS_HOURS,
    DEFAULT_COUPLE_HOURS,
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    MIN_OPEN_WINDOW_MINUTES,
    PROVIDER_FETCH_TIMEOUT_SECONDS,
    SLOT_STEP_MINUTES,
    SUGGESTION_EXTENSION_DAYS,
    SUGGESTION_LIMIT_PER_STRATEGY,
    SUGGESTION_MIN_DURATION_MINUTES,
)
from ...shared.timeutils import now_in_reference, start_of_day
from . import commitments as commitment_ops
from .conflicts import filter_slots, fits_preferences, notice_cutoff
from .errors import AvailabilityError, InvalidDuration, InvalidRange
from .intervals import find_gaps, merge, merge_by_day
from .providers import ProviderRegistry, collect_busy_intervals
from .rating import rate
from .schemas import (
    AvailabilityResult,
    BusyInterval,
    CommitmentCreate,
    CommitmentUpdate,
    OpenWindow,
    RatedSlot,
    RecurringCommitment,
    SchedulingPreferences,
    Slot,
    Subject,
    Weekday,
)
from .windows import generate

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    VALIDATING = "validating"
    FETCHING_BUSY_DATA = "fetching_busy_data"
    MERGING = "merging"
    GENERATING_CANDIDATES = "generating_candidates"
    FILTERING = "filtering"
    RATING = "rating"
    DONE = "done"
    REJECTED = "rejected"


class SubjectDirectory(Protocol):
    def resolve_user_ids(self, subject: Subject) -> list[str]: ...

    def relationship_user_ids(self, relationship_id: str) -> list[str]: ...

    def calendar_pairs(self, user_ids: list[str]) -> list[tuple[str, str]]: ...

    def get_preferences(self, owner_key: str) -> Optional[SchedulingPreferences]: ...


def default_preferences(owner_key: Optional[str]) -> SchedulingPreferences:
    """Fallback when no preferences were supplied or stored"""
    if owner_key and owner_key.startswith("relationship:"):
        return SchedulingPreferences.every_day(DEFAULT_COUPLE_HOURS)
    return SchedulingPreferences.every_day(DEFAULT_BUSINESS_HOURS)


def validate_duration(duration_minutes: int) -> None:
    if not MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES:
        raise InvalidDuration(
            f"Duration {duration_minutes} must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes"
        )


def validate_range(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise InvalidRange(f"End date {end_date} must be after start date {start_date}")


def commitments_as_busy(day: date, commitments: list[RecurringCommitment]) -> list[BusyInterval]:
    """Materialise the commitments falling on `day` as absolute intervals"""
    weekday = Weekday.from_date(day)
    midnight = start_of_day(day)
    return [
        BusyInterval(
            start=midnight + timedelta(minutes=c.start_minutes),
            end=midnight + timedelta(minutes=c.end_minutes),
            label=c.title,
            source_id=f"commitment:{c.id}",
        )
        for c in commitments
        if c.weekday == weekday
    ]


class AvailabilityOrchestrator:
    """Computes rated open slots for users, relationships and groups"""

    def __init__(
        self,
        registry: ProviderRegistry,
        directory: SubjectDirectory,
        clock: Callable[[], datetime] = now_in_reference,
        step_minutes: int = SLOT_STEP_MINUTES,
        fetch_timeout: float = PROVIDER_FETCH_TIMEOUT_SECONDS,
    ):
        self.registry = registry
        self.directory = directory
        self.clock = clock
        self.step_minutes = step_minutes
        self.fetch_timeout = fetch_timeout

    def _enter(self, stage: Stage, detail: str = "") -> None:
        logger.debug(f"➡️ {stage.value} {detail}".rstrip())

    # ------------------------------------------------------------------
    # Request normalisation
    # ------------------------------------------------------------------

    @contextmanager
    def _validating(self):
        self._enter(Stage.VALIDATING)
        try:
            yield
        except AvailabilityError as e:
            self._enter(Stage.REJECTED, e.code)
            logger.info(f"ℹ️ Availability request rejected: {e.message}")
            raise

    def _validate(self, subject: Subject, duration_minutes: int, date_range=None) -> list[str]:
        with self._validating():
            if date_range is not None:
                validate_range(*date_range)
            validate_duration(duration_minutes)
            return self.directory.resolve_user_ids(subject)

    def resolve_preferences(
        self, subject: Subject, supplied: Optional[SchedulingPreferences] = None
    ) -> SchedulingPreferences:
        if supplied is not None:
            return supplied
        owner_key = subject.owner_key
        if owner_key:
            stored = self.directory.get_preferences(owner_key)
            if stored is not None:
                return stored
        return default_preferences(owner_key)

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    async def _fetch_busy(
        self, user_ids: list[str], use_calendars: bool, start_date: date, end_date: date
    ) -> list[BusyInterval]:
        self._enter(Stage.FETCHING_BUSY_DATA, f"users={len(user_ids)}")
        if not use_calendars:
            return []
        pairs = self.directory.calendar_pairs(user_ids)
        return await collect_busy_intervals(
            self.registry,
            pairs,
            start_of_day(start_date),
            start_of_day(end_date + timedelta(days=1)),
            timeout=self.fetch_timeout,
        )

    def _compute(
        self,
        start_date: date,
        end_date: date,
        duration_minutes: int,
        preferences: SchedulingPreferences,
        busy: list[BusyInterval],
        slot_filter: Optional[Callable[[Slot], bool]] = None,
        minimum_notice_hours: Optional[int] = None,
        maximum_advance_days: Optional[int] = None,
    ) -> AvailabilityResult:
        now = self.clock()
        notice = (
            preferences.minimum_advance_notice_hours if minimum_notice_hours is None else minimum_notice_hours
        )
        horizon_days = maximum_advance_days or preferences.maximum_advance_days

        self._enter(Stage.MERGING, f"intervals={len(busy)}")
        merged_by_day = merge_by_day(busy)

        self._enter(Stage.GENERATING_CANDIDATES)
        candidates = generate(
            start_date, end_date, preferences.day_preferences, duration_minutes, self.step_minutes
        )

        result: AvailabilityResult = {}
        for day in sorted(candidates):
            merged = merged_by_day.get(day, [])

            self._enter(Stage.FILTERING, day.isoformat())
            slots = candidates[day]
            if slot_filter is not None:
                slots = [s for s in slots if slot_filter(s)]
            kept = filter_slots(
                slots, merged, preferences.recurring_commitments, now, notice, horizon_days
            )

            self._enter(Stage.RATING, day.isoformat())
            rated = sorted(
                (RatedSlot(start=s.start, end=s.end, rating=rate(s, merged)) for s in kept),
                key=lambda r: (r.start, r.end),
            )
            if rated:
                result[day] = rated

        self._enter(Stage.DONE, f"days={len(result)}")
        return result

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def get_availability(
        self,
        subject: Subject,
        start_date: date,
        end_date: date,
        duration_minutes: int,
        preferences: Optional[SchedulingPreferences] = None,
    ) -> AvailabilityResult:
        """Rated open slots per day for a user, relationship or user list"""
        user_ids = self._validate(subject, duration_minutes, (start_date, end_date))
        prefs = self.resolve_preferences(subject, preferences)

        logger.info(
            f"📅 Computing availability for {len(user_ids)} user(s) {start_date}..{end_date} ({duration_minutes} min)"
        )
        busy = await self._fetch_busy(user_ids, prefs.use_external_calendars, start_date, end_date)
        return self._compute(start_date, end_date, duration_minutes, prefs, busy)

    async def get_slots_for_day(
        self,
        subject: Subject,
        day: date,
        duration_minutes: int,
        preferences: Optional[SchedulingPreferences] = None,
    ) -> list[RatedSlot]:
        """Same pipeline restricted to a single date"""
        user_ids = self._validate(subject, duration_minutes)
        prefs = self.resolve_preferences(subject, preferences)
        busy = await self._fetch_busy(user_ids, prefs.use_external_calendars, day, day)
        return self._compute(day, day, duration_minutes, prefs, busy).get(day, [])

    async def find_mutual_availability(
        self,
        user_ids: list[str],
        start_date: date,
        end_date: date,
        duration_minutes: int,
        preferences: Optional[SchedulingPreferences] = None,
    ) -> AvailabilityResult:
        """
        Slots when every listed user is free. Busy data from all users is
        merged before filtering; without preferences, default business hours
        apply.
        """
        subject = Subject(user_ids=user_ids)
        resolved = self._validate(subject, duration_minutes, (start_date, end_date))
        prefs = preferences or default_preferences(None)

        logger.info(f"📅 Finding mutual availability for {len(resolved)} users")
        busy = await self._fetch_busy(resolved, prefs.use_external_calendars, start_date, end_date)
        return self._compute(start_date, end_date, duration_minutes, prefs, busy)

    async def find_mutual_availability_for_relationships(
        self,
        first_relationship_id: str,
        second_relationship_id: str,
        start_date: date,
        end_date: date,
        duration_minutes: int,
    ) -> AvailabilityResult:
        """
        Slots that suit two couples.

        Candidates come from the first couple's preferences and must also fit
        the second couple's windows and commitments. Busy data is merged
        across all members of both relationships.
        """
        with self._validating():
            validate_range(start_date, end_date)
            validate_duration(duration_minutes)
            first_users = self.directory.relationship_user_ids(first_relationship_id)
            second_users = self.directory.relationship_user_ids(second_relationship_id)
        user_ids = list(dict.fromkeys(first_users + second_users))

        first_prefs = self.resolve_preferences(Subject(relationship_id=first_relationship_id))
        second_prefs = self.resolve_preferences(Subject(relationship_id=second_relationship_id))

        if first_prefs.use_external_calendars != second_prefs.use_external_calendars:
            logger.warning(
                f"⚠️ Relationships {first_relationship_id} and {second_relationship_id} "
                "have different calendar settings; using calendars for both"
            )
        use_calendars = first_prefs.use_external_calendars or second_prefs.use_external_calendars

        horizons = [d for d in (first_prefs.maximum_advance_days, second_prefs.maximum_advance_days) if d]

        busy = await self._fetch_busy(user_ids, use_calendars, start_date, end_date)
        return self._compute(
            start_date,
            end_date,
            duration_minutes,
            first_prefs,
            busy,
            slot_filter=lambda slot: fits_preferences(slot, second_prefs),
            minimum_notice_hours=max(
                first_prefs.minimum_advance_notice_hours, second_prefs.minimum_advance_notice_hours
            ),
            maximum_advance_days=min(horizons) if horizons else None,
        )

    async def suggest_alternatives(
        self,
        subject: Subject,
        start_date: date,
        end_date: date,
        duration_minutes: int,
        preferences: Optional[SchedulingPreferences] = None,
    ) -> list[RatedSlot]:
        """
        Fallback slots when a search comes back empty: first a shorter
        duration, then the two weeks after the requested range.
        """
        self._validate(subject, duration_minutes, (start_date, end_date))
        suggestions: list[RatedSlot] = []

        if duration_minutes > 60:
            shorter = max(SUGGESTION_MIN_DURATION_MINUTES, duration_minutes // 2)
            result = await self.get_availability(subject, start_date, end_date, shorter, preferences)
            suggestions.extend(_first_slots(result, SUGGESTION_LIMIT_PER_STRATEGY))

        extended_start = end_date + timedelta(days=1)
        extended_end = end_date + timedelta(days=SUGGESTION_EXTENSION_DAYS)
        result = await self.get_availability(subject, extended_start, extended_end, duration_minutes, preferences)
        suggestions.extend(_first_slots(result, SUGGESTION_LIMIT_PER_STRATEGY))

        logger.info(f"💡 Suggested {len(suggestions)} alternative slot(s)")
        return suggestions

    async def get_open_windows(
        self,
        subject: Subject,
        start_date: date,
        end_date: date,
        preferences: Optional[SchedulingPreferences] = None,
    ) -> dict[date, list[OpenWindow]]:
        """
        Maximal free stretches inside each preference window, with busy time,
        commitments and the notice cutoff carved out. Stretches shorter than
        the minimum open window are dropped.
        """
        with self._validating():
            validate_range(start_date, end_date)
            user_ids = self.directory.resolve_user_ids(subject)
        prefs = self.resolve_preferences(subject, preferences)

        busy = await self._fetch_busy(user_ids, prefs.use_external_calendars, start_date, end_date)
        merged_by_day = merge_by_day(busy)
        cutoff = notice_cutoff(self.clock(), prefs.minimum_advance_notice_hours)
        min_length = timedelta(minutes=MIN_OPEN_WINDOW_MINUTES)

        result: dict[date, list[OpenWindow]] = {}
        day = start_date
        while day <= end_date:
            obstructions = merge(
                merged_by_day.get(day, []) + commitments_as_busy(day, prefs.recurring_commitments)
            )
            windows = []
            for window in prefs.windows_for(Weekday.from_date(day)):
                window_start, window_end = window.bounds_on(day)
                for gap in find_gaps(max(window_start, cutoff), window_end, obstructions):
                    if gap.end - gap.start >= min_length:
                        windows.append(OpenWindow(start=gap.start, end=gap.end))
            if windows:
                result[day] = sorted(windows, key=lambda w: (w.start, w.end))
            day += timedelta(days=1)
        return result


def _first_slots(result: AvailabilityResult, limit: int) -> list[RatedSlot]:
    ordered = [slot for day in sorted(result) for slot in result[day]]
    return ordered[:limit]


class PreferenceService:
    """Stored preferences and recurring commitment mutations"""

    def __init__(self, directory):
        self.directory = directory

    def get_preferences(self, owner_key: str) -> SchedulingPreferences:
        return self.directory.get_preferences(owner_key) or default_preferences(owner_key)

    def save_preferences(self, owner_key: str, preferences: SchedulingPreferences) -> SchedulingPreferences:
        return self.directory.save_preferences(owner_key, preferences)

    def add_commitment(self, owner_key: str, data: CommitmentCreate) -> RecurringCommitment:
        updated, commitment = commitment_ops.add_commitment(self.get_preferences(owner_key), data)
        self.directory.save_preferences(owner_key, updated)
        return commitment

    def update_commitment(self, owner_key: str, commitment_id: str, data: CommitmentUpdate) -> RecurringCommitment:
        updated, commitment = commitment_ops.update_commitment(
            self.get_preferences(owner_key), commitment_id, data
        )
        self.directory.save_preferences(owner_key, updated)
        return commitment

    def delete_commitment(self, owner_key: str, commitment_id: str) -> None:
        updated = commitment_ops.delete_commitment(self.get_preferences(owner_key), commitment_id)
        self.directory.save_preferences(owner_key, updated)
