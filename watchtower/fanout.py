"""
Fail-fast concurrent fan-out.

    results = await fan_out(member=registry.is_member(addr), enabled=settings.submission_enabled())
    results["member"], results["enabled"]

All awaitables run concurrently. The first one to raise cancels every other
branch still in flight; the call then re-raises that single exception. Nothing
is returned unless every branch succeeded, so callers never act on a partial
set of reads.
"""

from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import Any, Awaitable, Dict, Mapping


async def fan_out(**branches: Awaitable[Any]) -> Mapping[str, Any]:
    if not branches:
        return MappingProxyType({})

    tasks: Dict[str, asyncio.Task] = {
        name: asyncio.ensure_future(aw) for name, aw in branches.items()
    }
    try:
        done, pending = await asyncio.wait(tasks.values(), return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        await _cancel_all(tasks.values())
        raise

    failed = _first_failure(tasks, done)
    if failed is not None:
        await _cancel_all(pending)
        raise failed

    return MappingProxyType({name: t.result() for name, t in tasks.items()})


def _first_failure(tasks: Dict[str, asyncio.Task], done) -> BaseException | None:
    # Branch declaration order decides between failures that finished in the same tick.
    # Every failure is retrieved so asyncio does not report the losers as unhandled.
    failures = [
        t.exception() for t in tasks.values()
        if t in done and not t.cancelled()
    ]
    return next((e for e in failures if e is not None), None)


async def _cancel_all(tasks) -> None:
    tasks = [t for t in tasks if not t.done()]
    for t in tasks:
        t.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["fan_out"]
