"""Shared test helpers and stub classes.

Import from here instead of duplicating fakes in individual test files:

    from tests.helpers import FakeBackend
"""

from __future__ import annotations

import asyncio
from typing import Callable, Mapping

from textrelay.ai.ai_types import OperationKind

Responder = Callable[[OperationKind, str, Mapping[str, str]], str]


class FakeBackend:
    """Backend stub that records every call and answers through ``responder``.

    Tracks the peak number of in-flight calls so concurrency bounds can be
    asserted. The default responder echoes the input length.
    """

    def __init__(
        self,
        responder: Responder | None = None,
        *,
        capacity_hint: int | None = None,
        delay: float = 0.0,
    ) -> None:
        self.capacity_hint = capacity_hint
        self.calls: list[tuple[OperationKind, str, dict[str, str]]] = []
        self.active = 0
        self.max_active = 0
        self._responder = responder or (lambda operation, text, params: f"out:{len(text)}")
        self._delay = delay

    async def run(self, operation: OperationKind, text: str, operation_params: Mapping[str, str]) -> str:
        self.calls.append((operation, text, dict(operation_params)))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            return self._responder(operation, text, operation_params)
        finally:
            self.active -= 1

    def calls_for_stage(self, stage: str | None) -> list[tuple[OperationKind, str, dict[str, str]]]:
        return [call for call in self.calls if call[2].get("stage") == stage]


class FlakyResponder:
    """Raises ``error`` for the first ``failures`` calls, then answers ``result``."""

    def __init__(self, failures: int, *, result: str = "ok", error: Exception | None = None) -> None:
        self.remaining = failures
        self.result = result
        self.error = error or RuntimeError("transient failure")
        self.calls = 0

    def __call__(self, operation: OperationKind, text: str, params: Mapping[str, str]) -> str:
        self.calls += 1
        if self.remaining > 0:
            self.remaining -= 1
            raise self.error
        return self.result


def sentence_text(length: int) -> str:
    """Return ``length`` characters of prose with regular sentence breaks."""

    sentence = "The quick brown fox jumps over the lazy dog. "
    repeated = sentence * (length // len(sentence) + 1)
    return repeated[:length]
