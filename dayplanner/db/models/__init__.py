"""ORM models exposed for metadata discovery."""
from dayplanner.db.models.state_blob import StateBlob

__all__ = ["StateBlob"]
