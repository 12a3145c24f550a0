from __future__ import annotations

import json
from datetime import datetime
from typing import Callable, List, Union

import pytest
from fastapi.testclient import TestClient

from dayplanner.container import ServiceContainer, build_container
from dayplanner.core.config import Settings
from dayplanner.persistence.adapter import InMemoryPersistenceAdapter
from dayplanner.services.llm_client import ModelParams
from dayplanner.services.plan_request_builder import PlanRequestDocument

FIXED_NOW = datetime(2026, 10, 18, 7, 30)

Reply = Union[str, Callable[[PlanRequestDocument], str]]


class FakeLanguageModelClient:
    """Replays queued replies and records every request document."""

    def __init__(self, replies: List[Reply] | None = None) -> None:
        self.replies: List[Reply] = list(replies or [])
        self.requests: List[PlanRequestDocument] = []

    def queue(self, reply: Union[Reply, list]) -> None:
        self.replies.append(json.dumps(reply) if isinstance(reply, list) else reply)

    def generate(self, document: PlanRequestDocument, params: ModelParams) -> str:
        self.requests.append(document)
        if not self.replies:
            return "[]"
        reply = self.replies.pop(0)
        return reply(document) if callable(reply) else reply


@pytest.fixture()
def fake_llm() -> FakeLanguageModelClient:
    return FakeLanguageModelClient()


@pytest.fixture()
def adapter() -> InMemoryPersistenceAdapter:
    return InMemoryPersistenceAdapter()


@pytest.fixture()
def container(adapter, fake_llm) -> ServiceContainer:
    settings = Settings(database_url="memory://", home_address="1 Main St", _env_file=None)
    built = build_container(settings, adapter=adapter, llm=fake_llm)
    built.planner.clock = lambda: FIXED_NOW
    return built


@pytest.fixture()
def client(container):
    from dayplanner.api.deps import get_container
    from dayplanner.main import app

    app.dependency_overrides[get_container] = lambda: container
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
