"""Managed cloud tier: Google Gemini ``generateContent`` over httpx."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..ai_types import OperationKind, ProviderTier
from ..errors import BackendError, BackendTimeout, ErrorCode
from ..prompts import build_prompt

LOGGER = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash-lite"


class GeminiBackend:
    """Backend adapter for the Gemini REST API.

    One ``httpx.AsyncClient`` is reused for every chunk of a request; the
    orchestrator bounds how many calls share it at once.
    """

    tier = ProviderTier.CLOUD_PRIMARY

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout: float | None = 60.0,
        capacity_hint: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("An API key is required for the Gemini backend")
        self._api_key = api_key
        self._model = model or DEFAULT_GEMINI_MODEL
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        self.capacity_hint = capacity_hint

    @property
    def model(self) -> str:
        return self._model

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    async def run(
        self,
        operation: OperationKind,
        text: str,
        operation_params: Mapping[str, str],
    ) -> str:
        rendered = build_prompt(operation, text, operation_params)
        body: dict[str, Any] = {"contents": [{"parts": [{"text": rendered.prompt}]}]}
        if rendered.temperature is not None:
            body["generationConfig"] = {"temperature": rendered.temperature}

        try:
            response = await self._http.post(
                self.endpoint,
                json=body,
                headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
            )
        except httpx.TimeoutException as exc:
            raise BackendTimeout.after(self._timeout or 0.0, label="Gemini request") from exc
        except httpx.HTTPError as exc:
            raise BackendError(message=f"Gemini request failed: {exc}") from exc

        if response.status_code == 429:
            raise BackendError(
                error_code=ErrorCode.RATE_LIMITED,
                message="Gemini rate limit reached.",
                suggestion="Wait a moment and try again.",
                status_code=429,
            )
        if response.is_error:
            raise BackendError(
                error_code=ErrorCode.BACKEND_HTTP_ERROR,
                message=f"Gemini returned HTTP {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
                details={"model": self._model},
            )
        return _extract_text(response.json())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


def _extract_text(payload: Mapping[str, Any]) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        feedback = payload.get("promptFeedback") or {}
        raise BackendError(
            error_code=ErrorCode.EMPTY_RESULT,
            message="Gemini returned no candidates.",
            details={"block_reason": feedback.get("blockReason")} if feedback else {},
        )
    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    return "".join(str(part.get("text", "")) for part in parts if isinstance(part, Mapping)).strip()


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    error = payload.get("error") if isinstance(payload, Mapping) else None
    if isinstance(error, Mapping) and error.get("message"):
        return str(error["message"])
    return response.reason_phrase


__all__ = ["GeminiBackend", "GEMINI_BASE_URL", "DEFAULT_GEMINI_MODEL"]
