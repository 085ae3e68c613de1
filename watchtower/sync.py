"""
Wait for the chain reader to catch up with the network head.

Suspends until `ChainReader.is_synced()` reports True, polling every
`poll_s` seconds. A failing status check raises SyncError, which aborts the
current cycle only. There is no deadline here; cancellation comes from the
caller (scheduler shutdown) or the client's own timeout.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from watchtower.errors import SyncError
from watchtower.interfaces import ChainReader


async def wait_synced(chain: ChainReader, *, poll_s: float = 5.0, log: Optional[Any] = None) -> None:
    announced = False
    while True:
        try:
            synced = await chain.is_synced()
        except SyncError:
            raise
        except Exception as e:
            raise SyncError(f"could not check node sync status: {type(e).__name__}: {e}") from e
        if synced:
            if announced and log is not None:
                log.info("sync.complete")
            return
        if not announced and log is not None:
            log.info("sync.waiting", poll_s=poll_s)
            announced = True
        await asyncio.sleep(poll_s)


__all__ = ["wait_synced"]
