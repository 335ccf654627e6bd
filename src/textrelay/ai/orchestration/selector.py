"""Choosing the provider tier for one request."""

from __future__ import annotations

import logging

from ..ai_types import AvailabilityProbe, AvailabilityStatus, OperationKind, ProviderConfig, ProviderTier
from ..errors import NoProviderAvailable

LOGGER = logging.getLogger(__name__)


class ProviderSelector:
    """Pure precedence rules mapping config + probe to a single tier.

    1. ``cloud-local`` whenever it is enabled and configured.
    2. ``cloud-primary`` when cloud-first is requested and a credential exists.
    3. ``built-in`` when the operation's capability is ready or downloading.
    4. ``cloud-primary`` as fallback when a credential exists.

    Selection happens once per call. A tier that fails at call time is retried
    but never swapped for another tier mid-request.
    """

    def select(
        self,
        operation: OperationKind,
        config: ProviderConfig,
        probe: AvailabilityProbe,
    ) -> ProviderTier:
        if config.wants_local:
            if config.local_configured:
                LOGGER.debug("Selected %s: local endpoint enabled", ProviderTier.CLOUD_LOCAL.value)
                return ProviderTier.CLOUD_LOCAL
            LOGGER.warning("Local endpoint enabled but base URL or model name is missing; skipping it")

        has_cloud_key = config.has_credentials(ProviderTier.CLOUD_PRIMARY)
        if config.wants_cloud_first and has_cloud_key:
            LOGGER.debug("Selected %s: cloud-first preference", ProviderTier.CLOUD_PRIMARY.value)
            return ProviderTier.CLOUD_PRIMARY

        capability = operation.capability
        status = probe.status(capability)
        if status.usable:
            if status is AvailabilityStatus.DOWNLOADING:
                LOGGER.info("On-device %s is still downloading; expect extra latency", capability)
            LOGGER.debug("Selected %s: %s is %s", ProviderTier.BUILT_IN.value, capability, status.value)
            return ProviderTier.BUILT_IN

        if has_cloud_key:
            LOGGER.debug(
                "Selected %s: on-device %s unavailable", ProviderTier.CLOUD_PRIMARY.value, capability
            )
            return ProviderTier.CLOUD_PRIMARY

        raise NoProviderAvailable(
            message=f"No AI provider is available for {operation.value}.",
            details={
                "operation": operation.value,
                "capability": capability,
                "capability_status": status.value,
                "local_enabled": config.wants_local,
                "cloud_credentials": has_cloud_key,
            },
        )


def select_provider(
    operation: OperationKind,
    config: ProviderConfig,
    probe: AvailabilityProbe,
) -> ProviderTier:
    """Functional shortcut for :meth:`ProviderSelector.select`."""

    return ProviderSelector().select(operation, config, probe)


__all__ = ["ProviderSelector", "select_provider"]
