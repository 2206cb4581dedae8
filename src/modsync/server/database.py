"""Server database using SQLAlchemy with SQLite.

This module provides:
- The append-only changelog (append, query since sequence, prune by age)
- Storage of the last scanned filesystem snapshot
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import Session

from modsync.core.types import ChangeEntry, ChangeOperation, FileRecord, FileSystemSnapshot
from modsync.server.models import (
    Base,
    ChangeLogState,
    ChangeRecord,
    SnapshotFile,
    SnapshotState,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

_STATE_ROW_ID = 1


class SequenceError(Exception):
    """Raised when appended entries would break the strictly increasing sequence."""


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on read; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def record_to_entry(record: ChangeRecord) -> ChangeEntry:
    """Convert a ChangeRecord row to a ChangeEntry."""
    return ChangeEntry(
        sequence_number=record.sequence_number,
        operation=ChangeOperation(record.operation),
        file_path=record.file_path,
        fingerprint=record.fingerprint,
        timestamp=_as_utc(record.timestamp) or datetime.now(UTC),
        file_size=record.file_size,
        last_modified=_as_utc(record.last_modified),
    )


class Database:
    """SQLAlchemy database for the changelog and snapshot.

    Uses SQLite with WAL mode so readers see a consistent changelog
    while the single writer appends.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # check_same_thread=False: FastAPI runs sync routes in a thread pool
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    def _get_state(self, session: Session) -> ChangeLogState:
        state = session.get(ChangeLogState, _STATE_ROW_ID)
        if state is None:
            state = ChangeLogState(id=_STATE_ROW_ID, current_sequence=0)
            session.add(state)
            session.flush()
        return state

    # === Change log operations ===

    def get_current_sequence(self) -> int:
        """Get the last assigned sequence number (0 if nothing was ever appended)."""
        with self._session() as session:
            state = session.get(ChangeLogState, _STATE_ROW_ID)
            return state.current_sequence if state else 0

    def get_last_updated(self) -> datetime | None:
        """Get the time of the last append, or None if the log is empty."""
        with self._session() as session:
            state = session.get(ChangeLogState, _STATE_ROW_ID)
            return _as_utc(state.last_updated) if state else None

    def append_changes(self, entries: list[ChangeEntry]) -> int:
        """Append changelog entries.

        Args:
            entries: Entries in ascending sequence order, all greater than
                the current sequence.

        Returns:
            The new current sequence.

        Raises:
            SequenceError: If the entries are not strictly increasing past
                the current sequence.
        """
        with self._session() as session:
            state = self._get_state(session)
            last = state.current_sequence
            for entry in entries:
                if entry.sequence_number <= last:
                    raise SequenceError(
                        f"Sequence {entry.sequence_number} does not follow {last}"
                    )
                last = entry.sequence_number
                session.add(
                    ChangeRecord(
                        sequence_number=entry.sequence_number,
                        operation=entry.operation.value,
                        file_path=entry.file_path,
                        fingerprint=entry.fingerprint,
                        timestamp=entry.timestamp,
                        file_size=entry.file_size,
                        last_modified=entry.last_modified,
                    )
                )
            if entries:
                state.current_sequence = last
                state.last_updated = datetime.now(UTC)
            session.commit()
            return last

    def get_changes_since(self, sequence: int, limit: int | None = None) -> list[ChangeEntry]:
        """Get changes with a sequence number greater than the given one.

        Args:
            sequence: Last sequence the caller has already applied.
            limit: Optional maximum number of entries.

        Returns:
            Entries in ascending sequence order.
        """
        with self._session() as session:
            stmt = (
                select(ChangeRecord)
                .where(ChangeRecord.sequence_number > sequence)
                .order_by(ChangeRecord.sequence_number.asc())
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            return [record_to_entry(r) for r in session.execute(stmt).scalars().all()]

    def count_changes(self) -> int:
        """Number of entries currently retained."""
        with self._session() as session:
            return session.execute(select(func.count()).select_from(ChangeRecord)).scalar_one()

    def prune_old_entries(self, older_than_days: int = 30) -> int:
        """Delete changelog entries older than a number of days.

        The current sequence is left untouched.

        Args:
            older_than_days: Delete entries older than this many days.

        Returns:
            Number of entries deleted.
        """
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
        with self._session() as session:
            result = session.execute(delete(ChangeRecord).where(ChangeRecord.timestamp < cutoff))
            session.commit()
            count = result.rowcount or 0
        if count:
            logger.info("Pruned %d changelog entries older than %d days", count, older_than_days)
        return count

    # === Snapshot operations ===

    def load_snapshot(self) -> FileSystemSnapshot | None:
        """Load the stored snapshot, or None if no scan was ever saved."""
        with self._session() as session:
            state = session.get(SnapshotState, _STATE_ROW_ID)
            if state is None:
                return None
            files = {
                row.path: FileRecord(
                    fingerprint=row.fingerprint,
                    is_directory=row.is_directory,
                    size=row.size,
                    last_modified=_as_utc(row.last_modified),
                )
                for row in session.execute(select(SnapshotFile)).scalars().all()
            }
            return FileSystemSnapshot(
                files=files,
                sequence_number=state.sequence_number,
                timestamp=_as_utc(state.timestamp) or datetime.now(UTC),
            )

    def save_snapshot(self, snapshot: FileSystemSnapshot) -> None:
        """Replace the stored snapshot."""
        with self._session() as session:
            session.execute(delete(SnapshotFile))
            session.add_all(
                SnapshotFile(
                    path=path,
                    fingerprint=record.fingerprint,
                    is_directory=record.is_directory,
                    size=record.size,
                    last_modified=record.last_modified,
                )
                for path, record in snapshot.files.items()
            )
            state = session.get(SnapshotState, _STATE_ROW_ID)
            if state is None:
                state = SnapshotState(id=_STATE_ROW_ID)
                session.add(state)
            state.sequence_number = snapshot.sequence_number
            state.timestamp = snapshot.timestamp
            session.commit()
