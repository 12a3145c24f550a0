"""Byte-oriented persistence adapters keyed by state name."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from dayplanner.db.base import Base
from dayplanner.db.models.state_blob import StateBlob
from dayplanner.db.session import build_session_factory

logger = logging.getLogger(__name__)

TASK_GROUPS_KEY = "task_groups"
MANUAL_QUEUE_KEY = "manual_queue"
AUTO_QUEUE_KEY = "auto_queue"
DAILY_PLANS_KEY = "daily_plans"
RECURRING_TASKS_KEY = "recurring_tasks"


class PersistenceAdapter(Protocol):
    def save(self, key: str, data: bytes) -> None:
        ...

    def load(self, key: str) -> Optional[bytes]:
        ...


class InMemoryPersistenceAdapter:
    """Process-local adapter used by tests and throwaway runs."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None) -> None:
        self._blobs: Dict[str, bytes] = dict(initial or {})
        self._lock = Lock()

    def save(self, key: str, data: bytes) -> None:
        with self._lock:
            self._blobs[key] = bytes(data)

    def load(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._blobs.get(key)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._blobs)


class SqlPersistenceAdapter:
    """Stores each key as one row of the ``state_blobs`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_engine(cls, engine: Engine) -> "SqlPersistenceAdapter":
        Base.metadata.create_all(bind=engine, tables=[StateBlob.__table__])
        return cls(build_session_factory(engine))

    def save(self, key: str, data: bytes) -> None:
        with self._session_factory() as session:
            blob = session.get(StateBlob, key)
            if blob is None:
                session.add(StateBlob(key=key, payload=data))
            else:
                blob.payload = data
            session.commit()
        logger.debug("Saved %d bytes under %s", len(data), key)

    def load(self, key: str) -> Optional[bytes]:
        try:
            with self._session_factory() as session:
                blob = session.get(StateBlob, key)
                return bytes(blob.payload) if blob is not None else None
        except SQLAlchemyError as exc:
            logger.warning("Failed to load %s, starting without prior state: %s", key, exc)
            return None
