"""Availability domain schemas - Pydantic value objects and request/response models"""

import uuid
from datetime import date, datetime, timedelta
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Weekday(str, Enum):
    SUNDAY = "sunday"
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"

    @classmethod
    def from_date(cls, day: date) -> "Weekday":
        """Weekday of a calendar date (date.weekday() counts Monday as 0)"""
        return _PY_WEEKDAYS[day.weekday()]


_PY_WEEKDAYS = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
)


class ProviderType(str, Enum):
    """Known calendar backends. Gateways are registered by value, so other
    string keys can be registered alongside these."""

    GOOGLE = "google"
    OUTLOOK = "outlook"
    APPLE = "apple"


class Rating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"


class Slot(NamedTuple):
    """A candidate (start, end) pair before rating"""

    start: datetime
    end: datetime


class BusyInterval(BaseModel):
    """One obstruction pulled from an external calendar"""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    label: Optional[str] = None
    all_day: bool = False
    source_id: str = ""

    @property
    def is_valid(self) -> bool:
        return self.end > self.start


def _minute_of_day(hour: int, minute: int) -> int:
    return hour * 60 + minute


class TimeOfDayWindow(BaseModel):
    """A same-day time range such as 09:00-17:00"""

    model_config = ConfigDict(frozen=True)

    start_hour: int = Field(ge=0, le=23)
    start_minute: int = Field(default=0, ge=0, le=59)
    end_hour: int = Field(ge=0, le=24)
    end_minute: int = Field(default=0, ge=0, le=59)

    @model_validator(mode="after")
    def validate_order(self):
        if self.end_hour == 24 and self.end_minute != 0:
            raise ValueError("Window cannot end after midnight")
        if self.end_minutes <= self.start_minutes:
            raise ValueError("Window end must be after window start")
        return self

    @property
    def start_minutes(self) -> int:
        return _minute_of_day(self.start_hour, self.start_minute)

    @property
    def end_minutes(self) -> int:
        return _minute_of_day(self.end_hour, self.end_minute)

    def bounds_on(self, day: date) -> tuple[datetime, datetime]:
        """Absolute start/end of this window on a given day"""
        midnight = datetime.combine(day, datetime.min.time())
        return (
            midnight + timedelta(minutes=self.start_minutes),
            midnight + timedelta(minutes=self.end_minutes),
        )


class DayPreference(BaseModel):
    model_config = ConfigDict(frozen=True)

    weekday: Weekday
    windows: list[TimeOfDayWindow] = Field(default_factory=list)


class RecurringCommitment(BaseModel):
    """A standing weekly obstruction, e.g. gym every Tuesday 18:00-19:00"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: Optional[str] = None
    weekday: Weekday
    start_hour: int = Field(ge=0, le=23)
    start_minute: int = Field(default=0, ge=0, le=59)
    end_hour: int = Field(ge=0, le=24)
    end_minute: int = Field(default=0, ge=0, le=59)

    @model_validator(mode="after")
    def validate_order(self):
        if self.end_hour == 24 and self.end_minute != 0:
            raise ValueError("Commitment cannot end after midnight")
        if self.end_minutes <= self.start_minutes:
            raise ValueError("Commitment end must be after commitment start")
        return self

    @property
    def start_minutes(self) -> int:
        return _minute_of_day(self.start_hour, self.start_minute)

    @property
    def end_minutes(self) -> int:
        return _minute_of_day(self.end_hour, self.end_minute)


class SchedulingPreferences(BaseModel):
    """
    Caller-owned scheduling preferences for a user or relationship.

    Treated as immutable input by the engine; commitment mutations return a
    new instance.
    """

    model_config = ConfigDict(frozen=True)

    day_preferences: list[DayPreference] = Field(default_factory=list)
    recurring_commitments: list[RecurringCommitment] = Field(default_factory=list)
    minimum_advance_notice_hours: int = Field(default=0, ge=0)
    use_external_calendars: bool = True
    maximum_advance_days: Optional[int] = Field(default=None, ge=1)

    def windows_for(self, weekday: Weekday) -> list[TimeOfDayWindow]:
        """All preference windows for a weekday, in declaration order"""
        windows: list[TimeOfDayWindow] = []
        for pref in self.day_preferences:
            if pref.weekday == weekday:
                windows.extend(pref.windows)
        return windows

    def has_day(self, weekday: Weekday) -> bool:
        return any(p.weekday == weekday for p in self.day_preferences)

    @classmethod
    def every_day(cls, hours: tuple[int, int, int, int], **kwargs) -> "SchedulingPreferences":
        """Preferences with the same single window on all seven weekdays"""
        start_hour, start_minute, end_hour, end_minute = hours
        window = TimeOfDayWindow(
            start_hour=start_hour,
            start_minute=start_minute,
            end_hour=end_hour,
            end_minute=end_minute,
        )
        return cls(
            day_preferences=[DayPreference(weekday=w, windows=[window]) for w in Weekday],
            **kwargs,
        )


class RatedSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    rating: Rating


class OpenWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


# Date-indexed output; days without slots are omitted
AvailabilityResult = dict[date, list[RatedSlot]]


class EventDescriptor(BaseModel):
    """A caller-built calendar event, written back as-is by a gateway"""

    summary: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None

    @model_validator(mode="after")
    def validate_order(self):
        if self.end <= self.start:
            raise ValueError("Event end must be after event start")
        return self


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================


class Subject(BaseModel):
    """Who a request concerns: one user, one relationship, or explicit users"""

    user_id: Optional[str] = None
    relationship_id: Optional[str] = None
    user_ids: Optional[list[str]] = None

    @model_validator(mode="after")
    def validate_exactly_one(self):
        given = [v for v in (self.user_id, self.relationship_id, self.user_ids) if v is not None]
        if len(given) != 1:
            raise ValueError("Provide exactly one of user_id, relationship_id or user_ids")
        return self

    @property
    def owner_key(self) -> Optional[str]:
        """Key under which stored preferences for this subject live"""
        if self.relationship_id:
            return f"relationship:{self.relationship_id}"
        if self.user_id:
            return f"user:{self.user_id}"
        return None


class AvailabilityRequest(BaseModel):
    subject: Subject
    start_date: date
    end_date: date
    duration_minutes: int
    preferences: Optional[SchedulingPreferences] = None


class DaySlotsRequest(BaseModel):
    subject: Subject
    day: date
    duration_minutes: int
    preferences: Optional[SchedulingPreferences] = None


class MutualAvailabilityRequest(BaseModel):
    user_ids: list[str]
    start_date: date
    end_date: date
    duration_minutes: int
    preferences: Optional[SchedulingPreferences] = None


class RelationshipPairRequest(BaseModel):
    relationship_ids: list[str]
    start_date: date
    end_date: date
    duration_minutes: int

    @field_validator("relationship_ids")
    @classmethod
    def validate_pair(cls, v):
        if len(v) != 2:
            raise ValueError("Exactly two relationship IDs are required")
        return v


class AvailabilityResponse(BaseModel):
    days: dict[date, list[RatedSlot]]
    total_slots: int

    @classmethod
    def from_result(cls, result: AvailabilityResult) -> "AvailabilityResponse":
        return cls(days=result, total_slots=sum(len(v) for v in result.values()))


class OpenWindowsResponse(BaseModel):
    days: dict[date, list[OpenWindow]]


class SuggestionsResponse(BaseModel):
    slots: list[RatedSlot]


class CommitmentCreate(BaseModel):
    title: Optional[str] = None
    weekday: Weekday
    start_hour: int
    start_minute: int = 0
    end_hour: int
    end_minute: int = 0


class CommitmentUpdate(BaseModel):
    title: Optional[str] = None
    weekday: Optional[Weekday] = None
    start_hour: Optional[int] = None
    start_minute: Optional[int] = None
    end_hour: Optional[int] = None
    end_minute: Optional[int] = None
