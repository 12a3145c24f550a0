"""Async command handlers for plan generation, acceptance and AI expansion."""
from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, time as time_of_day, timedelta
from enum import Enum
from itertools import count
from typing import Callable, Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from dayplanner.core.exceptions import NotFoundError, PlannerError, StaleRequestError, TransportError
from dayplanner.models import PlannedTask, QueueKind, Task, TaskStatus
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services.daily_plan_store import DailyPlanStore
from dayplanner.services.llm_client import LanguageModelClient, ModelParams
from dayplanner.services.location import LocationProvider, fetch_location
from dayplanner.services.plan_reconciler import AcceptResult, PlanReconciler
from dayplanner.services.plan_request_builder import (
    CommittedEvent,
    PlanningContext,
    PlanRequest,
    PlanRequestBuilder,
    PlanRequestDocument,
    assumed_start,
)
from dayplanner.services.plan_response_parser import parse_plan_response
from dayplanner.services.recurrence import RecurrenceExpander
from dayplanner.services.recurring_templates import RecurringTemplateStore
from dayplanner.services.route_client import GeoRouteClient
from dayplanner.services.task_expansion import build_expansion_request, parse_expanded_tasks
from dayplanner.services.task_store import TaskStore
from dayplanner.services.time_math import combine, parse_time_string

logger = logging.getLogger(__name__)

MAX_SESSIONS = 50
DEFAULT_WAKE = time_of_day(8, 0)
DEFAULT_SLEEP = time_of_day(23, 0)


class PlanKind(str, Enum):
    DAY = "day"
    RESCHEDULE = "reschedule"


@dataclass
class PlanSession:
    """One outstanding planning request and the entries the model proposed."""

    day: date
    kind: PlanKind
    original_tasks: List[Task]
    transport_mode: str
    group_id: Optional[UUID] = None
    notes: List[str] = field(default_factory=list)
    deadlines: Dict[UUID, datetime] = field(default_factory=dict)
    request_id: UUID = field(default_factory=uuid4)
    entries: List[PlannedTask] = field(default_factory=list)
    raw_response: str = ""
    accepted: bool = False
    sequence: int = 0


@dataclass
class PlannerOptions:
    home_address: Optional[str] = None
    default_transport_mode: str = "drive"
    wake_time: time_of_day = DEFAULT_WAKE
    sleep_time: time_of_day = DEFAULT_SLEEP
    location_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> "PlannerOptions":
        return cls(
            home_address=settings.home_address or None,
            default_transport_mode=settings.default_transport_mode,
            wake_time=parse_time_string(settings.wake_time) or DEFAULT_WAKE,
            sleep_time=parse_time_string(settings.sleep_time) or DEFAULT_SLEEP,
            location_timeout_seconds=settings.location_timeout_seconds,
        )


class PlannerService:
    """Runs model calls off the event loop and applies results one at a time.

    Every request draws a sequence number when it starts. A parsed response
    becomes the day's current proposal unless a later request already
    landed; a failed request leaves the current proposal in place. Only the
    current proposal may be accepted.
    """

    def __init__(
        self,
        *,
        task_store: TaskStore,
        plan_store: DailyPlanStore,
        template_store: RecurringTemplateStore,
        reconciler: PlanReconciler,
        llm: LanguageModelClient,
        params: Optional[ModelParams] = None,
        builder: Optional[PlanRequestBuilder] = None,
        expander: Optional[RecurrenceExpander] = None,
        route_client: Optional[GeoRouteClient] = None,
        location_provider: Optional[LocationProvider] = None,
        options: Optional[PlannerOptions] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.task_store = task_store
        self.plan_store = plan_store
        self.template_store = template_store
        self.reconciler = reconciler
        self.llm = llm
        self.params = params or ModelParams()
        self.builder = builder or PlanRequestBuilder()
        self.expander = expander or RecurrenceExpander()
        self.route_client = route_client
        self.location_provider = location_provider
        self.options = options or PlannerOptions()
        self.clock = clock
        self._sessions: "OrderedDict[UUID, PlanSession]" = OrderedDict()
        self._latest: Dict[date, PlanSession] = {}
        self._issued = count(1)
        self._accepted_at: Dict[date, int] = {}
        self._apply_lock = asyncio.Lock()

    # ------------------------------------------------------------------ sessions

    def get_session(self, request_id: UUID) -> PlanSession:
        session = self._sessions.get(request_id)
        if session is None:
            raise NotFoundError(f"Plan request {request_id} not found")
        return session

    def _register(self, session: PlanSession) -> None:
        self._sessions[session.request_id] = session
        self._latest[session.day] = session
        while len(self._sessions) > MAX_SESSIONS:
            self._sessions.popitem(last=False)

    def _ensure_current(self, session: PlanSession) -> None:
        latest = self._latest.get(session.day)
        if latest is not session:
            raise StaleRequestError(
                f"Plan request {session.request_id} was superseded",
                details={"day": session.day.isoformat(), "latest": str(latest.request_id) if latest else None},
            )

    # ------------------------------------------------------------------ commands

    async def generate_plan(
        self,
        day: date,
        *,
        group_id: Optional[UUID] = None,
        transport_mode: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PlanSession:
        """Ask the model for a plan of ``day`` built from a group's tasks (or the day's tasks)."""
        tasks = self._plannable_tasks(day, group_id)
        session = PlanSession(
            day=day,
            kind=PlanKind.DAY,
            group_id=group_id,
            original_tasks=tasks,
            transport_mode=transport_mode or self.options.default_transport_mode,
            notes=[notes] if notes else [],
        )
        return await self._run_session(session, "plan.generate")

    async def regenerate_plan(self, request_id: UUID, notes: Optional[str] = None) -> PlanSession:
        """Discard a proposal and ask again with the same tasks plus accumulated notes."""
        previous = self.get_session(request_id)
        session = PlanSession(
            day=previous.day,
            kind=previous.kind,
            group_id=previous.group_id,
            original_tasks=list(previous.original_tasks),
            transport_mode=previous.transport_mode,
            notes=previous.notes + ([notes] if notes else []),
            deadlines=dict(previous.deadlines),
        )
        return await self._run_session(session, "plan.regenerate")

    async def optimize_reschedule_queue(
        self,
        *,
        task_ids: Optional[Sequence[UUID]] = None,
        deadlines: Optional[Dict[UUID, datetime]] = None,
        day: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PlanSession:
        """Propose new slots for queued tasks, honouring optional hard deadlines."""
        queued = self._queued_tasks(task_ids)
        session = PlanSession(
            day=day or self.clock().date(),
            kind=PlanKind.RESCHEDULE,
            original_tasks=queued,
            transport_mode=self.options.default_transport_mode,
            notes=[notes] if notes else [],
            deadlines=dict(deadlines or {}),
        )
        return await self._run_session(session, "plan.optimize")

    async def accept_plan(self, request_id: UUID, entries: Optional[Sequence[PlannedTask]] = None) -> AcceptResult:
        """Commit a proposal (optionally edited by the user) through the reconciler."""
        session = self.get_session(request_id)
        async with self._apply_lock:
            self._ensure_current(session)
            chosen = list(entries) if entries is not None else session.entries
            with trace(
                "plan.accept",
                metadata={"day": session.day.isoformat(), "entries": len(chosen), "kind": session.kind.value},
            ):
                result = self.reconciler.accept(
                    session.day,
                    chosen,
                    session.original_tasks,
                    replace_day=session.kind == PlanKind.DAY,
                )
            session.accepted = True
            self._accepted_at[session.day] = next(self._issued)
        log_metric("plan_accepted_entries", len(chosen), {"plan_only": len(result.plan_only)})
        return result

    async def expand_text(self, text: str, today: Optional[date] = None) -> List[Task]:
        """Draft tasks from free text; nothing is stored."""
        today = today or self.clock().date()
        schedule: Dict[date, List[str]] = {}
        for task in self.task_store.all_tasks():
            if task.date is not None and task.date >= today and not task.is_completed:
                schedule.setdefault(task.date, []).append(task.title)
        document = build_expansion_request(text, schedule, today)
        raw = await self._call_model("tasks.expand", document, {"chars": len(text)})
        drafts = parse_expanded_tasks(raw, today)
        log_metric("tasks_expanded", len(drafts))
        return drafts

    def expand_recurring_task(self, template_id: UUID, start: Optional[date] = None) -> List[Task]:
        template = self.template_store.get(template_id)
        if template is None:
            raise NotFoundError(f"Recurring template {template_id} not found")
        return self.expander.expand(template, self.task_store, start=start or self.clock().date())

    # ------------------------------------------------------------------ internals

    async def _run_session(self, session: PlanSession, operation: str) -> PlanSession:
        session.sequence = next(self._issued)
        document = await self._build_document(session)
        raw = await self._call_model(
            operation,
            document,
            {"day": session.day.isoformat(), "tasks": len(session.original_tasks), "kind": session.kind.value},
        )
        entries = parse_plan_response(raw, session.day)
        async with self._apply_lock:
            latest = self._latest.get(session.day)
            newest = max(latest.sequence if latest else 0, self._accepted_at.get(session.day, 0))
            if newest > session.sequence:
                logger.info("Dropping plan request %s: a newer request or accept landed first", session.request_id)
                raise StaleRequestError(
                    f"Plan request {session.request_id} finished after a newer request",
                    details={"day": session.day.isoformat(), "latest": str(latest.request_id) if latest else None},
                )
            session.raw_response = raw
            session.entries = entries
            self._register(session)
        logger.info("Plan request %s produced %d entries for %s", session.request_id, len(entries), session.day)
        return session

    async def _build_document(self, session: PlanSession) -> PlanRequestDocument:
        now = self.clock()
        location = None
        if self.location_provider is not None:
            location = await fetch_location(self.location_provider, self.options.location_timeout_seconds)
        origin = location or self.options.home_address

        window_start, window_end = self._window(session, now)
        selected = {task.id for task in session.original_tasks}
        committed = [
            event
            for task in self.task_store.all_tasks()
            if task.id not in selected
            and not task.is_completed
            and task.date is not None
            and window_start.date() <= task.date <= window_end.date()
            for event in [CommittedEvent.from_task(task)]
            if event is not None
        ]
        committed.sort(key=lambda event: event.start)

        travel = await self._travel_minutes(session, origin)
        context = PlanningContext(
            window_start=window_start,
            window_end=window_end,
            current_time=now,
            transport_mode=session.transport_mode,
            current_location=location,
            home_address=self.options.home_address,
            wake_time=self.options.wake_time,
            sleep_time=self.options.sleep_time,
            notes=list(session.notes),
        )
        request = PlanRequest(
            tasks=session.original_tasks,
            context=context,
            deadlines=session.deadlines,
            committed=committed,
            travel_minutes=travel,
        )
        return self.builder.build(request)

    def _window(self, session: PlanSession, now: datetime):
        start = combine(session.day, self.options.wake_time)
        if session.day == now.date() and now > start:
            start = now.replace(second=0, microsecond=0)
        end = combine(session.day, self.options.sleep_time)
        if session.deadlines:
            end = max(end, max(session.deadlines.values()))
        if end < start:
            end = start + timedelta(hours=1)
        return start, end

    async def _travel_minutes(self, session: PlanSession, origin: Optional[str]) -> Dict[UUID, int]:
        if self.route_client is None or not origin:
            return {}
        estimates: Dict[UUID, int] = {}
        for task in session.original_tasks:
            if not task.needs_travel:
                continue
            arrival = assumed_start(task, session.deadlines.get(task.id))
            try:
                with trace("route.estimate", metadata={"mode": session.transport_mode}):
                    estimate = await asyncio.to_thread(
                        self.route_client.estimate_duration, origin, task.location, session.transport_mode, arrival
                    )
            except PlannerError as exc:
                logger.warning("Skipping travel estimate for task %s: %s", task.id, exc.message)
                continue
            estimates[task.id] = estimate.minutes
        return estimates

    async def _call_model(self, operation: str, document: PlanRequestDocument, metadata: Dict) -> str:
        started = time.perf_counter()
        with trace(operation, metadata={**metadata, "model": self.params.model}):
            try:
                raw = await asyncio.wait_for(
                    asyncio.to_thread(self.llm.generate, document, self.params),
                    timeout=self.params.timeout_seconds,
                )
            except asyncio.TimeoutError as exc:
                raise TransportError(
                    f"Language model did not answer within {self.params.timeout_seconds:g}s"
                ) from exc
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        log_metric("llm_latency_ms", elapsed_ms, {"operation": operation})
        return raw

    def _plannable_tasks(self, day: date, group_id: Optional[UUID]) -> List[Task]:
        queued = self.task_store.queued_ids()
        if group_id is None:
            candidates = self.task_store.tasks_for_day(day)
        else:
            group = self.task_store.get_group(group_id)
            if group is None:
                raise NotFoundError(f"Group {group_id} not found")
            candidates = [task for task in group.tasks if task.id not in queued]
        return [task for task in candidates if task.status == TaskStatus.ACTIVE]

    def _queued_tasks(self, task_ids: Optional[Sequence[UUID]]) -> List[Task]:
        entries = self.task_store.queue(QueueKind.MANUAL) + self.task_store.queue(QueueKind.AUTOMATIC)
        wanted = set(task_ids) if task_ids else None
        tasks: List[Task] = []
        for entry in entries:
            if wanted is not None and entry.task_id not in wanted:
                continue
            tasks.append(self.task_store.get_task(entry.task_id) or entry.task)
        if wanted is not None and len(tasks) < len(wanted):
            missing = wanted - {task.id for task in tasks}
            raise NotFoundError("Tasks are not in the reschedule queue", details={"task_ids": sorted(map(str, missing))})
        return tasks
