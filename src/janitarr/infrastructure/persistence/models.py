"""SQLAlchemy ORM models for Janitarr."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from janitarr.domain.entities import utc_now


# Hey future me - SQLite doesn't preserve timezone info! UTC datetimes come back naive.
# ALWAYS run DB datetimes through this before comparing with datetime.now(UTC), otherwise
# you get "can't compare offset-naive and offset-aware datetimes".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# The other direction: SQLite binds a datetime as its wall-clock text and drops the offset,
# so every bound compared against a stored timestamp must be converted to UTC first.
def to_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC, assuming naive datetimes are already UTC."""
    return ensure_utc_aware(dt).astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, name is UNIQUE - it's how log entries reference a server and how operators
# address servers from the API. api_key holds the encrypted envelope, never plaintext.
class ServerModel(Base):
    """Managed Radarr/Sonarr server."""

    __tablename__ = "servers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    api_key: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (Index("ix_servers_type", "type"),)


class ConfigModel(Base):
    """Key-value configuration row."""

    __tablename__ = "config"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )


# Yo, activity logs are append-only. The timestamp index serves the newest-first listing and
# the retention DELETE; the (type, timestamp) index serves the 24h stats sums.
class ActivityLogModel(Base):
    """One activity log entry."""

    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    timestamp: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    server_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    server_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)
    count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    operation: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_activity_logs_timestamp", "timestamp"),
        Index("ix_activity_logs_type_timestamp", "type", "timestamp"),
        Index("ix_activity_logs_server_name", "server_name"),
    )
