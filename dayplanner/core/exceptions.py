"""
Custom exceptions for the planner.

Only the planning/command layer raises these to the HTTP boundary; store-level
inconsistencies are repaired in place and logged instead.
"""
from __future__ import annotations

from typing import Any, Optional


class PlannerError(Exception):
    """Base exception for the day planner."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(PlannerError):
    """A required credential or setting is missing."""


class TransportError(PlannerError):
    """Network failure or timeout talking to an external provider."""


class LocationTimeoutError(TransportError):
    """The current location could not be determined in time."""


class UpstreamError(PlannerError):
    """An external provider answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.status_code = status_code


class UpstreamFormatError(PlannerError):
    """A response arrived but could not be turned into a structured plan."""

    def __init__(self, reason: str, raw: str):
        super().__init__(reason, details={"raw": raw})
        self.reason = reason
        self.raw = raw


class PlanValidationError(UpstreamFormatError):
    """One element of an otherwise parseable array failed schema validation."""

    def __init__(self, reason: str, raw: str, index: Optional[int] = None):
        super().__init__(reason, raw)
        self.index = index


class InvalidRequestError(PlannerError):
    """An external provider rejected the request itself."""


class NotFoundError(PlannerError):
    """Referenced entity does not exist."""


class ConflictError(PlannerError):
    """Two copies of the same entity disagree."""


class StaleRequestError(ConflictError):
    """A superseded planning request tried to apply its result."""


class UnsupportedRecurrenceError(PlannerError):
    """A recurring template uses an interval the expander does not know."""
