"""Explicit wiring of stores, clients and services."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from dayplanner.core.config import Settings
from dayplanner.db.session import build_engine
from dayplanner.persistence.adapter import (
    InMemoryPersistenceAdapter,
    PersistenceAdapter,
    SqlPersistenceAdapter,
)
from dayplanner.services.daily_plan_store import DailyPlanStore
from dayplanner.services.llm_client import LanguageModelClient, ModelParams, OpenAILanguageModelClient
from dayplanner.services.location import LocationProvider, StaticLocationProvider
from dayplanner.services.plan_reconciler import PlanReconciler
from dayplanner.services.planner_service import PlannerOptions, PlannerService
from dayplanner.services.recurrence import RecurrenceExpander
from dayplanner.services.recurring_templates import RecurringTemplateStore
from dayplanner.services.route_client import CachedRouteClient, GeoRouteClient, GoogleDirectionsRouteClient
from dayplanner.services.task_store import TaskStore

logger = logging.getLogger(__name__)

IN_MEMORY_URL = "memory://"


@dataclass
class ServiceContainer:
    adapter: PersistenceAdapter
    task_store: TaskStore
    plan_store: DailyPlanStore
    template_store: RecurringTemplateStore
    reconciler: PlanReconciler
    planner: PlannerService


def build_adapter(database_url: str) -> PersistenceAdapter:
    if database_url == IN_MEMORY_URL:
        return InMemoryPersistenceAdapter()
    return SqlPersistenceAdapter.from_engine(build_engine(database_url))


def build_container(
    settings: Settings,
    *,
    adapter: Optional[PersistenceAdapter] = None,
    llm: Optional[LanguageModelClient] = None,
    route_client: Optional[GeoRouteClient] = None,
    location_provider: Optional[LocationProvider] = None,
) -> ServiceContainer:
    """Build every service once; pass fakes for any collaborator to override it."""
    adapter = adapter or build_adapter(settings.database_url)

    task_store = TaskStore(adapter)
    plan_store = DailyPlanStore(adapter)
    template_store = RecurringTemplateStore(adapter)
    task_store.load()
    plan_store.load()
    template_store.load()

    reconciler = PlanReconciler(task_store, plan_store)
    reconciler.reconcile()

    if route_client is None and settings.maps_api_key:
        route_client = CachedRouteClient(
            GoogleDirectionsRouteClient(settings.maps_api_key),
            max_entries=settings.route_cache_size,
        )
    if location_provider is None:
        location_provider = StaticLocationProvider(settings.home_address)

    planner = PlannerService(
        task_store=task_store,
        plan_store=plan_store,
        template_store=template_store,
        reconciler=reconciler,
        llm=llm or OpenAILanguageModelClient(settings.openai_api_key),
        params=ModelParams(
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            timeout_seconds=settings.llm_timeout_seconds,
        ),
        expander=RecurrenceExpander(horizon=settings.recurrence_horizon),
        route_client=route_client,
        location_provider=location_provider,
        options=PlannerOptions.from_settings(settings),
    )
    logger.info("Services ready (route lookups %s)", "on" if route_client else "off")
    return ServiceContainer(
        adapter=adapter,
        task_store=task_store,
        plan_store=plan_store,
        template_store=template_store,
        reconciler=reconciler,
        planner=planner,
    )
