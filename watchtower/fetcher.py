"""
As-of value retrieval.

Reporters must agree on the value *at the checkpoint height*, not the value at
the head, so every read here is pinned to an explicit height. Nothing is
cached; a restarted process re-reads the same historical value.

- PriceFetcher: external price oracle, `rate(pair, as_of_height)`.
- LedgerValueFetcher: arbitrary ledger query through `ChainReader.read_as_of`.

Both raise SourceUnavailableError naming the checkpoint. A ledger read against a
node that has not reached the checkpoint raises NotSynced instead. Retries are the
scheduler's business (the next cycle), not ours.
"""

from __future__ import annotations

from typing import Any

from watchtower.errors import SourceUnavailableError, SyncError
from watchtower.interfaces import ChainReader, PriceSource
from watchtower.types import Checkpoint, TokenPair


class PriceFetcher:
    def __init__(self, source: PriceSource, pair: TokenPair) -> None:
        self._source = source
        self._pair = pair

    @property
    def pair(self) -> TokenPair:
        return self._pair

    async def fetch(self, checkpoint: Checkpoint) -> int:
        try:
            value = await self._source.rate(self._pair, checkpoint)
        except (SourceUnavailableError, SyncError):
            raise
        except Exception as e:
            raise SourceUnavailableError(
                f"could not get price at block {checkpoint}: {type(e).__name__}: {e}",
                checkpoint=checkpoint,
                details={"base": self._pair.base, "quote": self._pair.quote},
            ) from e
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise SourceUnavailableError(
                f"price source returned an invalid value: {value!r}",
                checkpoint=checkpoint,
            )
        return value


class LedgerValueFetcher:
    """Reads a value from ledger state pinned at the checkpoint height."""

    def __init__(self, chain: ChainReader, query: Any) -> None:
        self._chain = chain
        self._query = query

    async def fetch(self, checkpoint: Checkpoint) -> Any:
        try:
            return await self._chain.read_as_of(checkpoint, self._query)
        except SyncError:
            raise
        except Exception as e:
            raise SourceUnavailableError(
                f"could not read ledger state at block {checkpoint}: {type(e).__name__}: {e}",
                checkpoint=checkpoint,
            ) from e


__all__ = ["PriceFetcher", "LedgerValueFetcher"]
