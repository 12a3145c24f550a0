"""Language model clients: request document in, untrusted text out."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import openai

from dayplanner.core.exceptions import ConfigurationError, TransportError, UpstreamError
from dayplanner.services.plan_request_builder import PlanRequestDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelParams:
    model: str = "gpt-4o"
    temperature: float = 0.4
    timeout_seconds: float = 60.0
    max_tokens: Optional[int] = None


class LanguageModelClient(Protocol):
    def generate(self, document: PlanRequestDocument, params: ModelParams) -> str:
        ...


class OpenAILanguageModelClient:
    """Chat-completions backed client.

    The API key is checked lazily so the service can start without one; the
    first model call then fails with ``ConfigurationError``.
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[openai.OpenAI] = None) -> None:
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> openai.OpenAI:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise ConfigurationError("OPENAI_API_KEY is not configured")
        self._client = openai.OpenAI(api_key=self._api_key)
        return self._client

    def generate(self, document: PlanRequestDocument, params: ModelParams) -> str:
        client = self._get_client()
        try:
            completion = client.chat.completions.create(
                model=params.model,
                temperature=params.temperature,
                max_tokens=params.max_tokens,
                timeout=params.timeout_seconds,
                messages=[
                    {"role": "system", "content": document.system},
                    {"role": "user", "content": document.prompt},
                ],
            )
        except openai.AuthenticationError as exc:
            raise ConfigurationError("Language model rejected the configured API key") from exc
        except openai.APITimeoutError as exc:
            raise TransportError("Language model request timed out") from exc
        except openai.APIConnectionError as exc:
            raise TransportError(f"Could not reach the language model: {exc}") from exc
        except openai.APIStatusError as exc:
            raise UpstreamError(
                f"Language model returned HTTP {exc.status_code}",
                status_code=exc.status_code,
            ) from exc

        if not completion.choices:
            raise UpstreamError("Language model returned no choices")
        content = completion.choices[0].message.content or ""
        logger.debug("Model %s returned %d characters", params.model, len(content))
        return content
