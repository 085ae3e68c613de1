"""
Collaborator surfaces consumed by the watchtower tasks.

Tasks receive concrete implementations through their constructors; nothing is
looked up at call time. The node-backed implementations live in
`watchtower.adapters`; tests use in-memory fakes.

All reads take an optional `height` where the underlying ledger supports an
as-of read. `None` means "current head".
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from watchtower.types import Address, ChallengeAction, Checkpoint, Receipt, TokenPair


@runtime_checkable
class ChainReader(Protocol):
    async def current_height(self) -> int: ...

    async def is_synced(self) -> bool: ...

    async def read_as_of(self, height: int, query: Any) -> Any:
        """Raises NotSynced or HistoryUnavailable."""
        ...


@runtime_checkable
class TrustRegistry(Protocol):
    async def is_member(self, address: Address) -> bool: ...

    async def is_challenged(self, address: Address) -> bool: ...


@runtime_checkable
class ProtocolSettings(Protocol):
    async def submission_frequency(self) -> int: ...

    async def submission_enabled(self) -> bool: ...


@runtime_checkable
class SubmissionLedger(Protocol):
    async def watermark(self) -> Checkpoint: ...

    async def has_submitted(self, address: Address, checkpoint: Checkpoint) -> bool: ...


@runtime_checkable
class PriceSource(Protocol):
    async def rate(self, pair: TokenPair, as_of_height: int) -> int:
        """Raises SourceUnavailableError."""
        ...


@runtime_checkable
class Broadcaster(Protocol):
    async def submit(self, checkpoint: Checkpoint, value: int, identity: Address) -> Receipt:
        """Raises SubmissionError."""
        ...

    async def respond_challenge(self, identity: Address) -> Receipt: ...


@runtime_checkable
class Wallet(Protocol):
    def node_address(self) -> Address: ...


@runtime_checkable
class ChallengeResponder(Protocol):
    async def respond(self, identity: Address, height: Optional[int] = None) -> ChallengeAction: ...


__all__ = [
    "ChainReader",
    "TrustRegistry",
    "ProtocolSettings",
    "SubmissionLedger",
    "PriceSource",
    "Broadcaster",
    "Wallet",
    "ChallengeResponder",
]
