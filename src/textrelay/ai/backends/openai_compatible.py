"""Self-hosted tier: any endpoint speaking the OpenAI chat-completions API."""

from __future__ import annotations

import logging
from typing import Mapping

import httpx
from openai import APIError, APIStatusError, RateLimitError

from ..ai_types import OperationKind, ProviderTier, TokenCounterProtocol
from ..client import AIClient, ClientSettings
from ..errors import BackendError, ErrorCode
from ..prompts import build_prompt

LOGGER = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2_048


def normalize_base_url(base_url: str) -> str:
    """Ensure the URL ends in ``/v1`` as Ollama and LM Studio expect."""

    trimmed = (base_url or "").strip().rstrip("/")
    if not trimmed:
        raise ValueError("A base URL is required for the local endpoint")
    if trimmed.endswith("/v1"):
        return trimmed
    return f"{trimmed}/v1"


class OpenAICompatibleBackend:
    """Backend adapter for Ollama, LM Studio and similar local servers."""

    tier = ProviderTier.CLOUD_LOCAL

    def __init__(
        self,
        client: AIClient,
        *,
        capacity_hint: int | None = None,
        max_tokens: int | None = DEFAULT_MAX_TOKENS,
        default_temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        self._client = client
        self.capacity_hint = capacity_hint
        self._max_tokens = max_tokens
        self._default_temperature = default_temperature

    @classmethod
    def from_config(
        cls,
        base_url: str,
        model: str,
        *,
        api_key: str = "",
        request_timeout: float | None = 120.0,
        debug_logging: bool = False,
        capacity_hint: int | None = None,
    ) -> OpenAICompatibleBackend:
        settings = ClientSettings(
            base_url=normalize_base_url(base_url),
            api_key=api_key,
            model=model,
            request_timeout=request_timeout,
            debug_logging=debug_logging,
        )
        return cls(AIClient(settings), capacity_hint=capacity_hint)

    @property
    def model(self) -> str:
        return self._client.settings.model

    @property
    def token_counter(self) -> TokenCounterProtocol:
        return self._client.token_counter

    async def run(
        self,
        operation: OperationKind,
        text: str,
        operation_params: Mapping[str, str],
    ) -> str:
        rendered = build_prompt(operation, text, operation_params)
        temperature = rendered.temperature if rendered.temperature is not None else self._default_temperature
        try:
            content = await self._client.complete(
                [{"role": "user", "content": rendered.prompt}],
                temperature=temperature,
                max_tokens=self._max_tokens,
            )
        except RateLimitError as exc:
            raise BackendError(
                error_code=ErrorCode.RATE_LIMITED,
                message="The local endpoint is rate limiting requests.",
                status_code=exc.status_code,
            ) from exc
        except APIStatusError as exc:
            raise BackendError(
                error_code=ErrorCode.BACKEND_HTTP_ERROR,
                message=f"The local endpoint returned HTTP {exc.status_code}.",
                status_code=exc.status_code,
                details={"model": self.model},
            ) from exc
        except (APIError, httpx.HTTPError) as exc:
            raise BackendError(
                message=f"Could not reach the local endpoint at {self._client.settings.base_url}: {exc}",
                suggestion="Check that the local server is running.",
            ) from exc
        return content.strip()

    async def check_connection(self) -> bool:
        """Return ``True`` when the endpoint answers a model listing."""

        try:
            models = await self._client.list_models(force_refresh=True)
        except (APIError, httpx.HTTPError) as exc:
            LOGGER.warning("Local endpoint %s is unreachable: %s", self._client.settings.base_url, exc)
            return False
        if self.model not in models:
            LOGGER.warning("Local endpoint does not list model %s (available: %s)", self.model, models)
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["OpenAICompatibleBackend", "normalize_base_url"]
