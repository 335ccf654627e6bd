"""Tier adapters implementing the :class:`~textrelay.ai.ai_types.Backend` protocol."""

from __future__ import annotations

import inspect
import logging
from typing import Mapping

from ..ai_types import Backend, ProviderConfig, ProviderTier
from .gemini import DEFAULT_GEMINI_MODEL, GEMINI_BASE_URL, GeminiBackend
from .on_device import OnDeviceBackend, OnDeviceCapability
from .openai_compatible import OpenAICompatibleBackend, normalize_base_url

LOGGER = logging.getLogger(__name__)


def build_backends(
    config: ProviderConfig,
    *,
    on_device: Mapping[str, OnDeviceCapability] | None = None,
    gemini_base_url: str = GEMINI_BASE_URL,
    request_timeout: float | None = 60.0,
    local_request_timeout: float | None = 120.0,
    debug_logging: bool = False,
) -> dict[ProviderTier, Backend]:
    """Construct one adapter per tier that *config* has enough data for."""

    backends: dict[ProviderTier, Backend] = {}
    if on_device:
        backends[ProviderTier.BUILT_IN] = OnDeviceBackend(on_device)
    if config.has_credentials(ProviderTier.CLOUD_PRIMARY):
        backends[ProviderTier.CLOUD_PRIMARY] = GeminiBackend(
            config.credential_for(ProviderTier.CLOUD_PRIMARY),
            model=config.cloud_model_name or DEFAULT_GEMINI_MODEL,
            base_url=gemini_base_url,
            timeout=request_timeout,
        )
    if config.local_configured:
        backends[ProviderTier.CLOUD_LOCAL] = OpenAICompatibleBackend.from_config(
            config.local_base_url or "",
            config.local_model_name or "",
            api_key=config.credential_for(ProviderTier.CLOUD_LOCAL),
            request_timeout=local_request_timeout,
            debug_logging=debug_logging,
        )
    LOGGER.debug("Built backends for tiers: %s", sorted(tier.value for tier in backends))
    return backends


async def aclose_backends(backends: Mapping[ProviderTier, Backend]) -> None:
    """Release network resources held by any adapter exposing ``aclose``."""

    for tier, backend in backends.items():
        close = getattr(backend, "aclose", None)
        if close is None:
            continue
        result = close()
        if inspect.isawaitable(result):
            await result
        LOGGER.debug("Closed %s backend", tier.value)


__all__ = [
    "build_backends",
    "aclose_backends",
    "GeminiBackend",
    "OnDeviceBackend",
    "OnDeviceCapability",
    "OpenAICompatibleBackend",
    "normalize_base_url",
    "GEMINI_BASE_URL",
    "DEFAULT_GEMINI_MODEL",
]
