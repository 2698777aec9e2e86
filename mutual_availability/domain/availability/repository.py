"""Availability repository - Database operations for subjects, calendar connections and preferences"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...models import AvailabilityPreferenceRecord, CalendarConnection, Relationship, User
from ...shared.crypto import decrypt_token
from .errors import SubjectNotFound
from .schemas import SchedulingPreferences, Subject

logger = logging.getLogger(__name__)

ACTIVE_RELATIONSHIP_STATUS = "active"


class AvailabilityRepository:
    """Repository for availability-related database operations"""

    @staticmethod
    def get_user(db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_relationship(db: Session, relationship_id: str) -> Optional[Relationship]:
        return db.query(Relationship).filter(Relationship.id == relationship_id).first()

    @staticmethod
    def get_connections(db: Session, user_ids: list[str]) -> list[CalendarConnection]:
        """Calendar connections flagged for availability, ordered for stable fan-out"""
        return (
            db.query(CalendarConnection)
            .filter(
                CalendarConnection.user_id.in_(user_ids),
                CalendarConnection.use_for_availability.is_(True),
            )
            .order_by(CalendarConnection.user_id, CalendarConnection.provider)
            .all()
        )

    @staticmethod
    def get_connection(db: Session, user_id: str, provider: str) -> Optional[CalendarConnection]:
        return (
            db.query(CalendarConnection)
            .filter(CalendarConnection.user_id == user_id, CalendarConnection.provider == provider)
            .first()
        )

    @staticmethod
    def get_preference_record(db: Session, owner_key: str) -> Optional[AvailabilityPreferenceRecord]:
        return (
            db.query(AvailabilityPreferenceRecord)
            .filter(AvailabilityPreferenceRecord.owner_key == owner_key)
            .first()
        )

    @staticmethod
    def upsert_preferences(db: Session, owner_key: str, data: dict) -> AvailabilityPreferenceRecord:
        record = AvailabilityRepository.get_preference_record(db, owner_key)
        if record is None:
            record = AvailabilityPreferenceRecord(owner_key=owner_key, data=data)
            db.add(record)
        else:
            record.data = data
        db.commit()
        db.refresh(record)
        return record


class DatabaseSubjectDirectory:
    """Resolves request subjects and their calendar connections from the database"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AvailabilityRepository()

    def relationship_user_ids(self, relationship_id: str) -> list[str]:
        relationship = self.repo.get_relationship(self.db, relationship_id)
        if not relationship or relationship.status != ACTIVE_RELATIONSHIP_STATUS:
            logger.info(f"ℹ️ Relationship {relationship_id} missing or not active")
            raise SubjectNotFound(f"Relationship {relationship_id} not found or not active")
        user_ids = [relationship.initiator_id]
        if relationship.partner_id:
            user_ids.append(relationship.partner_id)
        return self._require_active_users(user_ids)

    def resolve_user_ids(self, subject: Subject) -> list[str]:
        """User IDs a subject stands for; raises SubjectNotFound if empty or inactive"""
        if subject.relationship_id:
            return self.relationship_user_ids(subject.relationship_id)
        if subject.user_id:
            return self._require_active_users([subject.user_id])
        return self._require_active_users(list(subject.user_ids or []))

    def _require_active_users(self, user_ids: list[str]) -> list[str]:
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            raise SubjectNotFound("No users given")
        for user_id in unique_ids:
            user = self.repo.get_user(self.db, user_id)
            if not user or not user.is_active:
                raise SubjectNotFound(f"User {user_id} not found or not active")
        return unique_ids

    def calendar_pairs(self, user_ids: list[str]) -> list[tuple[str, str]]:
        """(user_id, provider) for every connection enabled for availability"""
        return [(c.user_id, c.provider) for c in self.repo.get_connections(self.db, user_ids)]

    def get_preferences(self, owner_key: str) -> Optional[SchedulingPreferences]:
        record = self.repo.get_preference_record(self.db, owner_key)
        if record is None:
            return None
        return SchedulingPreferences.model_validate(record.data)

    def save_preferences(self, owner_key: str, preferences: SchedulingPreferences) -> SchedulingPreferences:
        self.repo.upsert_preferences(self.db, owner_key, preferences.model_dump(mode="json"))
        logger.info(f"✅ Saved scheduling preferences for {owner_key}")
        return preferences


class DatabaseTokenStore:
    """
    Looks up and decrypts provider access tokens.

    Opens its own short-lived session per lookup so gateways registered once
    at startup can outlive any single request session.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_access_token(self, user_id: str, provider: str) -> Optional[str]:
        db = self.session_factory()
        try:
            connection = AvailabilityRepository.get_connection(db, user_id, provider)
            if not connection or not connection.access_token:
                return None
            return decrypt_token(connection.access_token)
        finally:
            db.close()

    def get_calendar_id(self, user_id: str, provider: str) -> Optional[str]:
        db = self.session_factory()
        try:
            connection = AvailabilityRepository.get_connection(db, user_id, provider)
            return connection.calendar_id if connection else None
        finally:
            db.close()
