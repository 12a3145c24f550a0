from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from dayplanner.core.exceptions import ConfigurationError, TransportError, UpstreamError
from dayplanner.services.llm_client import ModelParams, OpenAILanguageModelClient
from dayplanner.services.plan_request_builder import PlanRequestDocument

DOCUMENT = PlanRequestDocument(system="be brief", prompt="plan my day")
REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class _FakeCompletions:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.kwargs = {}

    def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _client(outcome):
    completions = _FakeCompletions(outcome)
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAILanguageModelClient(client=fake), completions


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_generate_sends_system_and_user_messages() -> None:
    client, completions = _client(_completion("[]"))

    assert client.generate(DOCUMENT, ModelParams(model="gpt-4o-mini", temperature=0.1)) == "[]"
    assert completions.kwargs["model"] == "gpt-4o-mini"
    assert completions.kwargs["messages"][0] == {"role": "system", "content": "be brief"}
    assert completions.kwargs["messages"][1]["content"] == "plan my day"


def test_missing_key_fails_on_first_call() -> None:
    with pytest.raises(ConfigurationError):
        OpenAILanguageModelClient(api_key=None).generate(DOCUMENT, ModelParams())


def test_connection_errors_become_transport_errors() -> None:
    client, _ = _client(openai.APIConnectionError(request=REQUEST))
    with pytest.raises(TransportError):
        client.generate(DOCUMENT, ModelParams())


def test_status_errors_keep_status_code() -> None:
    response = httpx.Response(503, request=REQUEST)
    client, _ = _client(openai.APIStatusError("unavailable", response=response, body=None))

    with pytest.raises(UpstreamError) as excinfo:
        client.generate(DOCUMENT, ModelParams())

    assert excinfo.value.status_code == 503


def test_empty_choices_is_upstream_error() -> None:
    client, _ = _client(SimpleNamespace(choices=[]))
    with pytest.raises(UpstreamError):
        client.generate(DOCUMENT, ModelParams())


def test_null_content_is_empty_string() -> None:
    client, _ = _client(_completion(None))
    assert client.generate(DOCUMENT, ModelParams()) == ""
