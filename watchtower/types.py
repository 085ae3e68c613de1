"""
Core value types shared by the watchtower tasks.

Everything here is immutable: facts are fetched fresh every cycle, joined once
and then only read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

Checkpoint = int
Address = str


@dataclass(frozen=True)
class TokenPair:
    """Base/quote token addresses for a price query (quote defaults to the native coin)."""

    base: Address
    quote: Address = "0x" + "00" * 20

    def as_tuple(self) -> Tuple[Address, Address]:
        return (self.base, self.quote)


@dataclass(frozen=True)
class GateFacts:
    """
    Joined result of the gating reads for one checkpoint.

    member:    TrustMembership of the node
    enabled:   FeatureFlag for the duty
    watermark: highest checkpoint already finalized by the trusted set
    submitted: SubmissionRecord[node, checkpoint]
    """

    checkpoint: Checkpoint
    member: bool
    enabled: bool
    watermark: Checkpoint
    submitted: bool

    @property
    def proceed(self) -> bool:
        return (
            self.member
            and self.enabled
            and self.checkpoint > self.watermark
            and not self.submitted
        )

    def reason(self) -> Optional[str]:
        """First failing clause, for logs. None when the gate is open."""
        if not self.member:
            return "not_trusted"
        if not self.enabled:
            return "disabled"
        if self.checkpoint <= self.watermark:
            return "checkpoint_finalized"
        if self.submitted:
            return "already_submitted"
        return None


@dataclass(frozen=True)
class Receipt:
    """Outcome of an accepted transaction."""

    tx_hash: str
    block_height: Optional[int] = None
    status: int = 1
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


class CycleOutcome(str, Enum):
    SUBMITTED = "submitted"
    SKIPPED = "skipped"
    RESPONDED = "responded"


class ChallengeAction(str, Enum):
    ALERTED = "alerted"
    REBUTTED = "rebutted"


@dataclass(frozen=True)
class CycleResult:
    """What one completed cycle did. Failed cycles raise instead."""

    task: str
    outcome: CycleOutcome
    checkpoint: Optional[Checkpoint] = None
    value: Optional[int] = None
    receipt: Optional[Receipt] = None
    reason: Optional[str] = None


__all__ = [
    "Checkpoint",
    "Address",
    "TokenPair",
    "GateFacts",
    "Receipt",
    "CycleOutcome",
    "ChallengeAction",
    "CycleResult",
]
