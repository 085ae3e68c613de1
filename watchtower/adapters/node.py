from __future__ import annotations

"""
watchtower.adapters.node
========================

Node-backed implementations of the read-side collaborator protocols.

All contract reads go through a single JSON-RPC method (`state.call` by
default) that takes a contract *name or address*, a function name, positional
arguments and an optional pinned `height`. Calldata encoding and name
resolution are the node's job.

Expected JSON-RPC shapes (method names configurable via RpcMethodMap):
- chain.getHead      -> {"height": int | "0x…", "hash": "0x…", ...}
- chain.syncStatus   -> false | {"syncing": bool, "currentHeight": int, "highestHeight": int}
- state.call         -> {"to": str, "fn": str, "args": [...], "height": int?} -> value
- state.getStorageBool -> [key_hex, height?] -> bool
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from Crypto.Hash import keccak

from watchtower.adapters.rpc import AsyncJsonRpcClient
from watchtower.errors import HistoryUnavailable, NotSynced, RpcError
from watchtower.types import Address, Checkpoint

# Contract names as registered with the node's storage contract.
TRUSTED_NODE_DAO = "rocketDAONodeTrusted"
NETWORK_SETTINGS = "rocketDAOProtocolSettingsNetwork"
NETWORK_PRICES = "rocketNetworkPrices"

SUBMITTED_KEY_PREFIX = b"network.prices.submitted.node"

# Error fragments nodes use when a pinned height has been pruned.
_HISTORY_MARKERS = ("missing trie node", "pruned", "header not found", "historical state", "not available")


def keccak256(data: bytes) -> bytes:
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()


def submitted_key(address: Address, checkpoint: Checkpoint) -> str:
    """Storage key of SubmissionRecord[address, checkpoint]: keccak(prefix || address || uint256(checkpoint))."""
    addr = bytes.fromhex(address[2:] if address.startswith("0x") else address)
    if len(addr) != 20:
        raise ValueError(f"address must be 20 bytes: {address!r}")
    return "0x" + keccak256(SUBMITTED_KEY_PREFIX + addr + int(checkpoint).to_bytes(32, "big")).hex()


def to_int(v: Any) -> int:
    if isinstance(v, bool):
        raise TypeError("expected integer, got bool")
    if isinstance(v, int):
        return v
    if isinstance(v, str):
        return int(v, 16) if v.startswith(("0x", "0X")) else int(v)
    raise TypeError(f"expected integer, got {type(v).__name__}")


@dataclass(frozen=True)
class ContractQuery:
    contract: str
    fn: str
    args: Tuple[Any, ...] = field(default_factory=tuple)


class NodeChainReader:
    def __init__(self, rpc: AsyncJsonRpcClient) -> None:
        self._rpc = rpc
        self._m = rpc.methods

    async def current_height(self) -> int:
        head = await self._rpc.call(self._m.get_head)
        if isinstance(head, dict):
            return to_int(head.get("height", head.get("number")))
        return to_int(head)

    async def is_synced(self) -> bool:
        status = await self._rpc.call(self._m.sync_status)
        if status is False or status is None:
            return True
        if isinstance(status, dict):
            if "syncing" in status:
                return not bool(status["syncing"])
            cur, top = status.get("currentHeight"), status.get("highestHeight")
            if cur is not None and top is not None:
                return to_int(cur) >= to_int(top)
        return False

    async def chain_id(self) -> int:
        return to_int(await self._rpc.call(self._m.chain_id))

    async def call(self, query: ContractQuery, height: Optional[int] = None) -> Any:
        params: dict = {"to": query.contract, "fn": query.fn, "args": list(query.args)}
        if height is not None:
            params["height"] = int(height)
        try:
            return await self._rpc.call(self._m.state_call, params)
        except RpcError as e:
            if height is not None and any(m in str(e.message).lower() for m in _HISTORY_MARKERS):
                raise HistoryUnavailable(str(e.message), height=height) from e
            raise

    async def read_as_of(self, height: int, query: ContractQuery) -> Any:
        head = await self.current_height()
        if head < height:
            raise NotSynced(f"node head {head} is behind requested height {height}", details={"head": head, "height": height})
        return await self.call(query, height)

    async def storage_bool(self, key: str) -> bool:
        return bool(await self._rpc.call(self._m.storage_get_bool, [key]))


class NodeTrustRegistry:
    def __init__(self, chain: NodeChainReader, *, contract: str = TRUSTED_NODE_DAO) -> None:
        self._chain = chain
        self._contract = contract

    async def is_member(self, address: Address) -> bool:
        return bool(await self._chain.call(ContractQuery(self._contract, "getMemberExists", (address,))))

    async def is_challenged(self, address: Address) -> bool:
        return bool(await self._chain.call(ContractQuery(self._contract, "getMemberIsChallenged", (address,))))


class NodeSettings:
    def __init__(self, chain: NodeChainReader, *, contract: str = NETWORK_SETTINGS) -> None:
        self._chain = chain
        self._contract = contract

    async def submission_frequency(self) -> int:
        return to_int(await self._chain.call(ContractQuery(self._contract, "getSubmitPricesFrequency")))

    async def submission_enabled(self) -> bool:
        return bool(await self._chain.call(ContractQuery(self._contract, "getSubmitPricesEnabled")))


class NodeSubmissionLedger:
    def __init__(self, chain: NodeChainReader, *, contract: str = NETWORK_PRICES) -> None:
        self._chain = chain
        self._contract = contract

    async def watermark(self) -> Checkpoint:
        return to_int(await self._chain.call(ContractQuery(self._contract, "getPricesBlock")))

    async def has_submitted(self, address: Address, checkpoint: Checkpoint) -> bool:
        return await self._chain.storage_bool(submitted_key(address, checkpoint))


__all__ = [
    "ContractQuery",
    "NodeChainReader",
    "NodeTrustRegistry",
    "NodeSettings",
    "NodeSubmissionLedger",
    "keccak256",
    "to_int",
    "submitted_key",
]
