"""On-device tier: explicit adapters around locally hosted capabilities."""

from __future__ import annotations

import logging
from typing import Mapping, Protocol, runtime_checkable

from ..ai_types import OperationKind, ProviderTier
from ..errors import BackendError, ErrorCode
from ..prompts import build_merge_prompt, build_prompt, is_merge_stage

LOGGER = logging.getLogger(__name__)

WRITER_CAPABILITY = "writer"

_SUMMARIZER_OPTIONS = ("length", "type", "format")
_TRANSLATOR_OPTIONS = ("source_language", "target_language")


@runtime_checkable
class OnDeviceCapability(Protocol):
    """One on-device model (summarizer, translator, writer)."""

    input_quota: int | None

    async def run(self, text: str, options: Mapping[str, str]) -> str:
        ...


class OnDeviceBackend:
    """Routes operations to named on-device capabilities.

    Summaries and translations go to their dedicated capability with raw text
    and options; everything else is rendered as a prompt for the ``writer``.
    """

    tier = ProviderTier.BUILT_IN

    def __init__(self, capabilities: Mapping[str, OnDeviceCapability]) -> None:
        self._capabilities = dict(capabilities)

    @property
    def capacity_hint(self) -> int | None:
        quotas = [
            capability.input_quota
            for capability in self._capabilities.values()
            if capability.input_quota
        ]
        return min(quotas) if quotas else None

    async def run(
        self,
        operation: OperationKind,
        text: str,
        operation_params: Mapping[str, str],
    ) -> str:
        if operation is OperationKind.SUMMARIZE:
            # The summarizer folds partial summaries itself.
            name, payload = operation.capability, text
            options = _pick(operation_params, _SUMMARIZER_OPTIONS)
        elif operation is OperationKind.TRANSLATE:
            name, payload = operation.capability, text
            options = _pick(operation_params, _TRANSLATOR_OPTIONS)
        else:
            name = WRITER_CAPABILITY
            if is_merge_stage(operation_params):
                payload = build_merge_prompt(operation, text, operation_params).prompt
            else:
                payload = build_prompt(operation, text, operation_params).prompt
            options = {}

        capability = self._capabilities.get(name)
        if capability is None:
            raise BackendError(
                error_code=ErrorCode.CAPABILITY_MISSING,
                message=f"The on-device {name} is not available.",
                details={"capability": name, "operation": operation.value},
            )
        LOGGER.debug("On-device %s handling %s (%s chars)", name, operation.value, len(payload))
        result = await capability.run(payload, options)
        return (result or "").strip()


def _pick(params: Mapping[str, str], keys: tuple[str, ...]) -> dict[str, str]:
    return {key: params[key] for key in keys if params.get(key)}


__all__ = ["OnDeviceBackend", "OnDeviceCapability", "WRITER_CAPABILITY"]
