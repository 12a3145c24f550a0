"""Main FastAPI application for the day planner backend."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from dayplanner.api.routes.groups import router as groups_router
from dayplanner.api.routes.plans import router as plans_router
from dayplanner.api.routes.recurring import router as recurring_router
from dayplanner.api.routes.reschedule import router as reschedule_router
from dayplanner.api.routes.tasks import router as tasks_router
from dayplanner.core.config import settings
from dayplanner.core.exceptions import (
    ConfigurationError,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PlannerError,
    TransportError,
    UnsupportedRecurrenceError,
    UpstreamError,
    UpstreamFormatError,
)
from dayplanner.core.logging import configure_logging
from dayplanner.core.middleware import RequestIDMiddleware
from dayplanner.observability.client import init_opik
from dayplanner.observability.tracing import trace

configure_logging(log_level=settings.log_level)
logger = logging.getLogger(__name__)

# first match wins, so subclasses come before their bases
ERROR_STATUS = (
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (TransportError, status.HTTP_504_GATEWAY_TIMEOUT),
    (UpstreamFormatError, status.HTTP_502_BAD_GATEWAY),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (UnsupportedRecurrenceError, status.HTTP_422_UNPROCESSABLE_ENTITY),
)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(tasks_router)
app.include_router(groups_router)
app.include_router(recurring_router)
app.include_router(plans_router)
app.include_router(reschedule_router)


def status_for(exc: PlannerError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(PlannerError)
async def planner_error_handler(request: Request, exc: PlannerError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    body = {"error": type(exc).__name__, "detail": exc.message}
    if exc.details is not None:
        body["details"] = exc.details
    return JSONResponse(status_code=code, content=body)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
