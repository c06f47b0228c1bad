"""Execution-budget governor for one invocation."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

Clock = Callable[[], float]


@dataclass(slots=True)
class ExecutionWindow:
    """Ephemeral per-invocation clock; never persisted."""

    started_at: float
    budget_seconds: float
    margin_seconds: float
    clock: Clock

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def remaining(self) -> float:
        """Seconds left before new work must stop being accepted."""

        return self.budget_seconds - self.margin_seconds - self.elapsed()

    def expired(self) -> bool:
        """Gate for starting new work; in-flight work is never interrupted."""

        return self.remaining() <= 0


class DeadlineScheduler:
    """Open execution windows whose usable budget excludes the handoff margin."""

    def __init__(
        self,
        budget_seconds: float,
        margin_seconds: float = 0.0,
        clock: Clock = time.monotonic,
    ) -> None:
        if budget_seconds <= 0:
            raise ValueError("budget_seconds must be > 0")
        if not 0 <= margin_seconds < budget_seconds:
            raise ValueError("margin_seconds must be in [0, budget_seconds)")
        self._budget_seconds = budget_seconds
        self._margin_seconds = margin_seconds
        self._clock = clock

    def open_window(self) -> ExecutionWindow:
        return ExecutionWindow(
            started_at=self._clock(),
            budget_seconds=self._budget_seconds,
            margin_seconds=self._margin_seconds,
            clock=self._clock,
        )


__all__ = ["Clock", "DeadlineScheduler", "ExecutionWindow"]
