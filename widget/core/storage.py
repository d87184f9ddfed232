"""SQLAlchemy + SQLite key/value store standing in for browser local storage.

Values are JSON-encoded. Anything missing or unparsable reads back as the
caller's default, never as an error.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

logger = structlog.get_logger(__name__)

Base = declarative_base()


class StorageEntry(Base):
    """One persisted key."""
    __tablename__ = "local_storage"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)  # JSON string
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))


class LocalStorage:
    """Durable JSON key/value storage scoped to one client profile."""

    def __init__(self, database_url: str = "sqlite:///:memory:"):
        """Create engine + table.

        Args:
            database_url: SQLAlchemy connection string. File-backed SQLite
                URLs get their parent directory created.
        """
        url = make_url(database_url)
        if url.drivername.startswith("sqlite") and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        self._engine = create_engine(database_url, echo=False)
        self._session_factory = sessionmaker(bind=self._engine)
        Base.metadata.create_all(self._engine)
        logger.info("storage.initialized", url=database_url.split("///")[0] + "///***")

    def get_raw(self, key: str) -> str | None:
        """Return the stored string for a key, or None."""
        with self._session_factory() as session:
            row = session.get(StorageEntry, key)
            return row.value if row else None

    def get_json(self, key: str, default: Any = None) -> Any:
        """Decode a stored JSON value.

        Args:
            key: Storage key.
            default: Returned when the key is absent or holds invalid JSON.

        Returns:
            The decoded value or ``default``.
        """
        raw = self.get_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("storage.corrupt_value", key=key, error=str(e))
            return default

    def set_raw(self, key: str, value: str) -> None:
        """Store a pre-encoded string under a key."""
        with self._session_factory() as session:
            row = session.get(StorageEntry, key)
            if row is None:
                session.add(StorageEntry(key=key, value=value, updated_at=datetime.now(timezone.utc)))
            else:
                row.value = value
                row.updated_at = datetime.now(timezone.utc)
            session.commit()
        logger.debug("storage.saved", key=key)

    def set_json(self, key: str, value: Any) -> None:
        """JSON-encode and store a value."""
        self.set_raw(key, json.dumps(value, default=str))

    def remove(self, key: str) -> None:
        """Delete a key if present."""
        with self._session_factory() as session:
            row = session.get(StorageEntry, key)
            if row is not None:
                session.delete(row)
                session.commit()

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys, optionally filtered by prefix."""
        with self._session_factory() as session:
            rows = session.query(StorageEntry.key).order_by(StorageEntry.key.asc()).all()
            return [r.key for r in rows if r.key.startswith(prefix)]

    def clear(self, prefix: str = "") -> int:
        """Delete every key with the given prefix. Returns the count removed."""
        removed = 0
        with self._session_factory() as session:
            for row in session.query(StorageEntry).all():
                if row.key.startswith(prefix):
                    session.delete(row)
                    removed += 1
            session.commit()
        logger.info("storage.cleared", prefix=prefix, removed=removed)
        return removed
