"""Metric helpers recorded as short Opik traces."""
from __future__ import annotations

from typing import Any, Dict, Optional

from dayplanner.observability import tracing


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update(metadata)
    with tracing.trace(f"metric:{name}", metadata=payload):
        pass
