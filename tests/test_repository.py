"""Tests for the SQLAlchemy-backed subject directory and token store"""
import pytest

from mutual_availability.domain.availability.errors import SubjectNotFound
from mutual_availability.domain.availability.repository import (
    AvailabilityRepository,
    DatabaseSubjectDirectory,
    DatabaseTokenStore,
)
from mutual_availability.domain.availability.schemas import (
    RecurringCommitment,
    SchedulingPreferences,
    Subject,
    Weekday,
)


@pytest.fixture
def directory(seeded_db):
    return DatabaseSubjectDirectory(seeded_db)


def test_resolve_relationship_members(directory):
    assert directory.resolve_user_ids(Subject(relationship_id="r1")) == ["u1", "u2"]


@pytest.mark.parametrize("relationship_id", ["r2", "r3", "missing"])
def test_pending_or_incomplete_relationships_rejected(directory, relationship_id):
    # r2 is pending, r3 has an inactive partner
    with pytest.raises(SubjectNotFound):
        directory.resolve_user_ids(Subject(relationship_id=relationship_id))


def test_resolve_user_list_deduplicates(directory):
    assert directory.resolve_user_ids(Subject(user_ids=["u2", "u1", "u2"])) == ["u2", "u1"]


@pytest.mark.parametrize("subject", [Subject(user_id="u3"), Subject(user_id="ghost"), Subject(user_ids=[])])
def test_inactive_unknown_or_empty_users_rejected(directory, subject):
    with pytest.raises(SubjectNotFound):
        directory.resolve_user_ids(subject)


def test_calendar_pairs_only_include_enabled_connections(directory):
    assert directory.calendar_pairs(["u1", "u2"]) == [("u1", "google"), ("u2", "outlook")]


def test_preferences_persist_as_json(directory, seeded_db):
    assert directory.get_preferences("relationship:r1") is None

    prefs = SchedulingPreferences.every_day(
        (18, 0, 22, 0),
        minimum_advance_notice_hours=12,
        recurring_commitments=[RecurringCommitment(id="c1", weekday=Weekday.TUESDAY, start_hour=18, end_hour=19)],
    )
    directory.save_preferences("relationship:r1", prefs)
    assert directory.get_preferences("relationship:r1") == prefs

    updated = prefs.model_copy(update={"use_external_calendars": False})
    directory.save_preferences("relationship:r1", updated)
    assert directory.get_preferences("relationship:r1").use_external_calendars is False

    record = AvailabilityRepository.get_preference_record(seeded_db, "relationship:r1")
    assert record.data["minimum_advance_notice_hours"] == 12


def test_token_store_decrypts_tokens(seeded_db, session_factory):
    store = DatabaseTokenStore(session_factory)

    assert store.get_access_token("u1", "google") == "google-token-u1"
    assert store.get_calendar_id("u1", "google") == "alex@example.com"
    assert store.get_calendar_id("u1", "outlook") is None
    assert store.get_access_token("u2", "google") is None
