"""
Node-backed collaborators for the watchtower tasks.

    rpc     = AsyncJsonRpcClient(cfg.rpc.url)
    chain   = NodeChainReader(rpc)
    bundle  = build_collaborators(cfg, rpc)
"""

from __future__ import annotations

from dataclasses import dataclass

from watchtower.adapters.node import (
    NodeChainReader,
    NodeSettings,
    NodeSubmissionLedger,
    NodeTrustRegistry,
)
from watchtower.adapters.oracle import RpcPriceSource
from watchtower.adapters.rpc import AsyncJsonRpcClient, RpcMethodMap
from watchtower.adapters.wallet import NodeWallet, RpcBroadcaster
from watchtower.config import WatchtowerConfig


@dataclass(frozen=True)
class Collaborators:
    chain: NodeChainReader
    registry: NodeTrustRegistry
    settings: NodeSettings
    ledger: NodeSubmissionLedger
    prices: RpcPriceSource | None
    broadcaster: RpcBroadcaster
    wallet: NodeWallet


def build_collaborators(cfg: WatchtowerConfig, rpc: AsyncJsonRpcClient) -> Collaborators:
    chain = NodeChainReader(rpc)
    prices = None
    if cfg.price.enabled and cfg.price.oracle_address:
        prices = RpcPriceSource(chain, cfg.price.oracle_address)
    return Collaborators(
        chain=chain,
        registry=NodeTrustRegistry(chain),
        settings=NodeSettings(chain),
        ledger=NodeSubmissionLedger(chain),
        prices=prices,
        broadcaster=RpcBroadcaster(rpc),
        wallet=NodeWallet(str(cfg.node_address)),
    )


def open_rpc(cfg: WatchtowerConfig, **kwargs) -> AsyncJsonRpcClient:
    kwargs.setdefault("methods", RpcMethodMap(**cfg.rpc.methods))
    return AsyncJsonRpcClient(
        cfg.rpc.url,
        timeout=cfg.rpc.timeout_s,
        max_retries=cfg.rpc.max_retries,
        backoff_base=cfg.rpc.backoff_s,
        **kwargs,
    )


__all__ = [
    "AsyncJsonRpcClient",
    "RpcMethodMap",
    "NodeChainReader",
    "NodeTrustRegistry",
    "NodeSettings",
    "NodeSubmissionLedger",
    "RpcPriceSource",
    "NodeWallet",
    "RpcBroadcaster",
    "Collaborators",
    "build_collaborators",
    "open_rpc",
]
