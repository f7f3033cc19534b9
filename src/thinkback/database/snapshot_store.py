"""Key-value persistence of whole JSON snapshots."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from thinkback.database.schema import SnapshotRecord, init_database
from thinkback.errors import PersistenceError

logger = logging.getLogger(__name__)

NOTES_KEY = "tb_notes"
SETTINGS_KEY = "tb_settings"
ONBOARDED_KEY = "tb_onboarded"


class SnapshotStore:
    """Stores one JSON document per key.

    Every write replaces the whole document. Storage failures surface as
    PersistenceError.
    """

    def __init__(self, database_url: str):
        """Initialize the store with a database connection.

        Args:
            database_url: SQLAlchemy database URL, e.g. sqlite:///data/thinkback.db
        """
        try:
            self.session_factory = init_database(database_url)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Cannot open snapshot database: {e}") from e

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.session_factory()

    def load(self, key: str) -> Optional[Any]:
        """Load and decode the document stored under `key`.

        Returns:
            The decoded document, or None if nothing is stored

        Raises:
            PersistenceError: If the read fails or the payload is not valid JSON
        """
        try:
            with self._get_session() as session:
                record = session.get(SnapshotRecord, key)
                payload = record.payload if record else None
        except SQLAlchemyError as e:
            logger.error("Reading snapshot %s failed: %s", key, e)
            raise PersistenceError(f"Cannot read snapshot {key!r}: {e}") from e

        if payload is None:
            return None
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            logger.error("Snapshot %s is corrupt: %s", key, e)
            raise PersistenceError(f"Snapshot {key!r} is corrupt: {e}") from e

    def save(self, key: str, document: Any) -> None:
        """Replace the document stored under `key`.

        Raises:
            PersistenceError: If the write fails
        """
        payload = json.dumps(document, ensure_ascii=False)
        try:
            with self._get_session() as session:
                record = session.get(SnapshotRecord, key)
                if record:
                    record.payload = payload
                    record.updated_at = datetime.now(timezone.utc)
                else:
                    session.add(SnapshotRecord(key=key, payload=payload))
                session.commit()
        except SQLAlchemyError as e:
            logger.error("Writing snapshot %s failed: %s", key, e)
            raise PersistenceError(f"Cannot write snapshot {key!r}: {e}") from e

    def remove(self, *keys: str) -> None:
        """Delete the documents stored under the given keys, if any."""
        if not keys:
            return
        try:
            with self._get_session() as session:
                session.execute(delete(SnapshotRecord).where(SnapshotRecord.key.in_(keys)))
                session.commit()
        except SQLAlchemyError as e:
            logger.error("Removing snapshots %s failed: %s", keys, e)
            raise PersistenceError(f"Cannot remove snapshots: {e}") from e

    def keys(self) -> list[str]:
        """List stored keys."""
        try:
            with self._get_session() as session:
                stmt = select(SnapshotRecord.key).order_by(SnapshotRecord.key)
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Cannot list snapshots: {e}") from e
