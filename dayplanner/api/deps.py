"""FastAPI dependencies resolving the shared service container."""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from dayplanner.container import ServiceContainer, build_container
from dayplanner.core.config import get_settings
from dayplanner.services.daily_plan_store import DailyPlanStore
from dayplanner.services.planner_service import PlannerService
from dayplanner.services.recurring_templates import RecurringTemplateStore
from dayplanner.services.task_store import TaskStore


@lru_cache
def get_container() -> ServiceContainer:
    return build_container(get_settings())


def get_task_store(container: ServiceContainer = Depends(get_container)) -> TaskStore:
    return container.task_store


def get_plan_store(container: ServiceContainer = Depends(get_container)) -> DailyPlanStore:
    return container.plan_store


def get_template_store(container: ServiceContainer = Depends(get_container)) -> RecurringTemplateStore:
    return container.template_store


def get_planner(container: ServiceContainer = Depends(get_container)) -> PlannerService:
    return container.planner
