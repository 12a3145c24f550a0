"""Key/value blob storage for serialized planner state."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, LargeBinary, String, func

from dayplanner.db.base import Base


class StateBlob(Base):
    __tablename__ = "state_blobs"

    key = Column(String(64), primary_key=True)
    payload = Column(LargeBinary, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
