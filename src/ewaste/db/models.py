"""SQLAlchemy ORM models — single source of truth for the database schema.

Two tables: bins (one row per provisioned sensor) and users (bin owners).
Generic column types are used throughout so the same models run on
PostgreSQL in production and SQLite in tests.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class User(Base):
    """A bin owner. Created at registration, token refreshed on login."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    sensor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    # Push-messaging device token, replaced on every login
    messaging_token: Mapped[Optional[str]] = mapped_column(String(4096), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    def public_fields(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "sensorId": self.sensor_id,
        }


class Bin(Base):
    """A physical bin, identified by its sensor id.

    sensor_id is indexed but not unique: provisioning may create duplicates,
    and lookups resolve to the oldest row.
    """

    __tablename__ = "bins"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    sensor_id: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    fill_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id"), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    user: Mapped[Optional["User"]] = relationship(lazy="selectin")

    def public_fields(self) -> dict:
        return {
            "id": str(self.id),
            "userId": str(self.user_id) if self.user_id else None,
            "fillPercentage": self.fill_percentage,
            "sensorId": self.sensor_id,
            "isActive": self.is_active,
        }
