"""
Subject directory models: users, relationships, calendar connections and
stored scheduling preferences.
"""
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    display_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    calendar_connections = relationship(
        "CalendarConnection", back_populates="user", cascade="all, delete-orphan"
    )


class Relationship(Base):
    __tablename__ = "relationships"

    id = Column(String(64), primary_key=True, index=True)
    initiator_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    partner_id = Column(String(64), ForeignKey("users.id"), nullable=True)
    # pending, active, terminated
    status = Column(String(20), default="pending", nullable=False)
    display_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CalendarConnection(Base):
    __tablename__ = "calendar_connections"
    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_calendar_connection_user_provider"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    # google, outlook, apple, ...
    provider = Column(String(32), nullable=False)

    # OAuth access token (encrypted). Refresh happens outside this service.
    access_token = Column(Text, nullable=True)
    calendar_id = Column(String(500), nullable=True)

    # Settings
    use_for_availability = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="calendar_connections")


class AvailabilityPreferenceRecord(Base):
    __tablename__ = "availability_preferences"

    id = Column(Integer, primary_key=True, index=True)
    # "relationship:<id>" or "user:<id>"
    owner_key = Column(String(100), nullable=False, unique=True, index=True)
    data = Column(JSON, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
