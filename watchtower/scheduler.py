from __future__ import annotations

"""
Watchtower scheduler

Runs each registered task on a fixed interval inside one event loop.

Key properties
--------------
- Cycles of the same task never overlap (per-task asyncio.Lock).
- Every error is contained at the cycle boundary: logged with its code,
  counted as a failed cycle, and the task is simply run again next interval.
  Nothing a cycle raises stops the process.
- Clean shutdown: stop() sets an asyncio.Event; loops finish their current
  cycle, then lingering tasks are cancelled after a timeout.
"""

import asyncio
import contextlib
import signal
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from watchtower.errors import ConfigurationError, WatchtowerError
from watchtower.logging import get_logger
from watchtower.metrics import METRICS, Metrics
from watchtower.tasks.base import Task
from watchtower.types import CycleResult


@dataclass(frozen=True)
class SchedulerOptions:
    interval_s: float = 300.0
    run_on_start: bool = True
    shutdown_timeout: float = 15.0


class Watchtower:
    def __init__(
        self,
        tasks: List[Task],
        *,
        options: Optional[SchedulerOptions] = None,
        metrics: Optional[Metrics] = None,
        logger: Optional[Any] = None,
    ) -> None:
        names = [t.name for t in tasks]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"duplicate task names: {names}")
        self.tasks: Dict[str, Task] = {t.name: t for t in tasks}
        self.options = options or SchedulerOptions()
        self.metrics = metrics or METRICS
        self.log = logger or get_logger(__name__).bind(role="scheduler")
        self._locks: Dict[str, asyncio.Lock] = {name: asyncio.Lock() for name in self.tasks}
        self._stop = asyncio.Event()
        self._loops: List[asyncio.Task] = []

    async def run_once(self, name: str) -> CycleResult:
        """Run one cycle of `name`; errors propagate to the caller."""
        task = self.tasks[name]
        async with self._locks[name]:
            with self.metrics.cycle_timer(name):
                try:
                    result = await task.run()
                except Exception:
                    self.metrics.record_cycle(name, "failed")
                    raise
        self.metrics.record_cycle(name, result.outcome.value)
        return result

    async def _guarded_cycle(self, name: str) -> Optional[CycleResult]:
        try:
            return await self.run_once(name)
        except ConfigurationError as e:
            self.log.error("cycle.failed", task=name, code=e.code, error=e.message, details=e.details)
        except WatchtowerError as e:
            self.log.warning("cycle.failed", task=name, code=e.code, error=e.message, details=e.details)
        except Exception as e:
            self.log.exception("cycle.crashed", task=name, error=f"{type(e).__name__}: {e}")
        return None

    async def _loop(self, name: str) -> None:
        if not self.options.run_on_start:
            if await self._sleep_or_stop(self.options.interval_s):
                return
        while not self._stop.is_set():
            await self._guarded_cycle(name)
            if await self._sleep_or_stop(self.options.interval_s):
                return

    async def _sleep_or_stop(self, seconds: float) -> bool:
        """Sleep for `seconds`; return True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def start(self) -> None:
        if self._loops:
            return
        self._stop.clear()
        self.log.info("scheduler.start", tasks=sorted(self.tasks), interval_s=self.options.interval_s)
        for name in self.tasks:
            self._loops.append(asyncio.create_task(self._loop(name), name=f"watchtower-{name}"))

    async def stop(self) -> None:
        if not self._loops:
            return
        self.log.info("scheduler.stop.begin")
        self._stop.set()
        try:
            await asyncio.wait_for(
                asyncio.gather(*self._loops, return_exceptions=True),
                timeout=self.options.shutdown_timeout,
            )
        except asyncio.TimeoutError:
            self.log.warning("scheduler.stop.timeout_cancel")
            for t in self._loops:
                if not t.done():
                    t.cancel()
            with contextlib.suppress(Exception):
                await asyncio.gather(*self._loops, return_exceptions=True)
        self._loops = []
        self.log.info("scheduler.stop.finished")

    async def run_until_stopped(self) -> None:
        """Wire SIGINT/SIGTERM and block until stop is requested."""
        self._wire_signals()
        await self.start()
        await self._stop.wait()
        await self.stop()

    def request_stop(self) -> None:
        self._stop.set()

    def _wire_signals(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig.name)
            except (NotImplementedError, RuntimeError):  # pragma: no cover - e.g. Windows
                self.log.warning("scheduler.signal_unsupported", signal=sig.name)

    def _on_signal(self, signame: str) -> None:
        self.log.info("scheduler.signal", signal=signame)
        self._stop.set()


__all__ = ["SchedulerOptions", "Watchtower"]
