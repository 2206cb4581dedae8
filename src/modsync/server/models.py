"""SQLAlchemy models for the ModSync server.

This module defines the database schema using SQLAlchemy ORM:
- ChangeRecord: One append-only changelog entry
- ChangeLogState: Single-row counter holding the last assigned sequence
- SnapshotFile / SnapshotState: The last scanned filesystem snapshot
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class ChangeRecord(Base):
    """Represents one changelog entry.

    Rows are only ever inserted (and pruned by age), never updated.
    """

    __tablename__ = "change_log"

    sequence_number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    operation: Mapped[str] = mapped_column(String(10), nullable=False)  # Add, Modify, Delete
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    file_size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_modified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_change_log_timestamp", "timestamp"),)


class ChangeLogState(Base):
    """Changelog head.

    Kept separately so that pruning old rows never moves the sequence backwards.
    """

    __tablename__ = "change_log_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    current_sequence: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )


class SnapshotFile(Base):
    """One entry of the last scanned snapshot."""

    __tablename__ = "snapshot_files"

    path: Mapped[str] = mapped_column(Text, primary_key=True)
    fingerprint: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    is_directory: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_modified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class SnapshotState(Base):
    """Sequence number and time of the stored snapshot."""

    __tablename__ = "snapshot_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sequence_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
