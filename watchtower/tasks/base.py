"""
Shared plumbing for watchtower tasks.

A task is an object with a `name` and an async `run()` that performs one
complete, independent cycle and returns a CycleResult (or raises). Tasks keep
no state between cycles besides their injected collaborators.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from watchtower.logging import get_logger
from watchtower.metrics import METRICS, Metrics
from watchtower.types import CycleResult


class Task(Protocol):
    name: str

    async def run(self) -> CycleResult: ...


class BaseTask:
    name: str = "task"

    def __init__(self, *, metrics: Optional[Metrics] = None, logger: Optional[Any] = None) -> None:
        self.metrics = metrics or METRICS
        self.log = logger or get_logger(f"watchtower.tasks.{self.name}").bind(task=self.name)


__all__ = ["Task", "BaseTask"]
