from __future__ import annotations

"""
Price oracle read via the node, pinned at an explicit height.

`getRate(src, dst)` on the oracle contract returns the wei price of one `src`
token in `dst`. The call carries the checkpoint as its height so every reporter
reads the same historical value; an archive-capable node is required once the
checkpoint falls outside the node's state window.
"""

from watchtower.adapters.node import ContractQuery, NodeChainReader, to_int
from watchtower.errors import SourceUnavailableError, SyncError
from watchtower.types import TokenPair


class RpcPriceSource:
    def __init__(self, chain: NodeChainReader, oracle_address: str, *, fn: str = "getRate") -> None:
        self._chain = chain
        self._oracle = oracle_address
        self._fn = fn

    async def rate(self, pair: TokenPair, as_of_height: int) -> int:
        query = ContractQuery(self._oracle, self._fn, pair.as_tuple())
        try:
            raw = await self._chain.read_as_of(as_of_height, query)
            return to_int(raw)
        except SyncError:
            raise
        except Exception as e:
            raise SourceUnavailableError(
                f"could not get price at block {as_of_height}: {e}",
                checkpoint=as_of_height,
                details={"oracle": self._oracle},
            ) from e


__all__ = ["RpcPriceSource"]
