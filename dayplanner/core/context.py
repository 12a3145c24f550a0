"""Request id shared by log records and Opik traces.

``asyncio.to_thread`` copies the current context, so model and route calls
made on worker threads log under the id of the request that started them.
"""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

REQUEST_ID_HEADER = "X-Request-Id"

_request_id: ContextVar[Optional[str]] = ContextVar("dayplanner_request_id", default=None)


def get_request_id() -> Optional[str]:
    return _request_id.get()


@contextmanager
def bound_request_id(request_id: str) -> Iterator[str]:
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)
