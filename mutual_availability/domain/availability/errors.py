"""Availability error taxonomy"""

from typing import Optional


class AvailabilityError(Exception):
    """Base class for availability failures surfaced to callers"""

    code = "availability_error"
    default_message = "Availability could not be computed."
    recovery_suggestion = "Try again later or contact support if the issue persists."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRange(AvailabilityError):
    code = "invalid_range"
    default_message = "The specified time range is invalid. End must be after start."
    recovery_suggestion = "Please ensure the end date is after the start date."


class InvalidDuration(AvailabilityError):
    code = "invalid_duration"
    default_message = "Duration must be between 15 minutes and 12 hours."
    recovery_suggestion = "Choose a duration between 15 minutes and 12 hours."


class SubjectNotFound(AvailabilityError):
    code = "subject_not_found"
    default_message = "The specified user or relationship could not be found."
    recovery_suggestion = "Return to the relationships screen and try again."


class CommitmentNotFound(AvailabilityError):
    code = "commitment_not_found"
    default_message = "The specified recurring commitment could not be found."
    recovery_suggestion = "Refresh your commitments and try again."


class ProviderFetchFailed(AvailabilityError):
    """A single calendar provider could not deliver busy data.

    Never fatal to a request: the fan-out logs it and carries on without that
    provider's intervals.
    """

    code = "provider_fetch_failed"
    default_message = "Failed to sync with calendar."
    recovery_suggestion = "Check your calendar permissions or try manually setting availability."

    def __init__(self, user_id: str, provider: str, reason: Optional[str] = None):
        self.user_id = user_id
        self.provider = provider
        self.reason = reason or "unknown error"
        super().__init__(f"Failed to sync {provider} calendar for user {user_id}: {self.reason}")
