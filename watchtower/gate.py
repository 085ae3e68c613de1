"""
Eligibility gate for checkpointed submissions.

The gate answers "may and must this node submit for `checkpoint` now?" from
four ledger facts read concurrently:

    member    = TrustRegistry.is_member(node)
    enabled   = ProtocolSettings.submission_enabled()
    watermark = SubmissionLedger.watermark()
    submitted = SubmissionLedger.has_submitted(node, checkpoint)

    proceed = member and enabled and checkpoint > watermark and not submitted

A failed read cancels the others and surfaces as a ReadError; the rule is
only evaluated on a complete set of facts. A closed gate is a normal result.
"""

from __future__ import annotations

from typing import Any, Awaitable, Dict, Optional

from watchtower.errors import ReadError, WatchtowerError
from watchtower.fanout import fan_out
from watchtower.interfaces import ProtocolSettings, SubmissionLedger, TrustRegistry
from watchtower.types import Address, Checkpoint, GateFacts


class EligibilityGate:
    def __init__(
        self,
        *,
        registry: TrustRegistry,
        settings: ProtocolSettings,
        ledger: SubmissionLedger,
    ) -> None:
        self._registry = registry
        self._settings = settings
        self._ledger = ledger

    async def facts(
        self,
        node: Address,
        checkpoint: Checkpoint,
        *,
        member: Optional[bool] = None,
        enabled: Optional[bool] = None,
    ) -> GateFacts:
        """
        Join the four gating facts for `checkpoint`. `member` and `enabled` may
        be passed in when the caller already read them this cycle; only the
        missing facts are fetched.
        """
        branches: Dict[str, Awaitable[Any]] = {}
        if member is None:
            branches["member"] = self._registry.is_member(node)
        if enabled is None:
            branches["enabled"] = self._settings.submission_enabled()
        branches["watermark"] = self._ledger.watermark()
        branches["submitted"] = self._ledger.has_submitted(node, checkpoint)
        try:
            r = await fan_out(**branches)
        except WatchtowerError:
            raise
        except Exception as e:
            raise ReadError(
                f"gating read failed: {type(e).__name__}: {e}",
                details={"checkpoint": checkpoint},
            ) from e

        return GateFacts(
            checkpoint=checkpoint,
            member=bool(r["member"] if member is None else member),
            enabled=bool(r["enabled"] if enabled is None else enabled),
            watermark=int(r["watermark"]),
            submitted=bool(r["submitted"]),
        )


async def membership_gate(registry: TrustRegistry, node: Address) -> bool:
    """Single-fact gate used by duties that only require trusted membership."""
    try:
        return bool(await registry.is_member(node))
    except WatchtowerError:
        raise
    except Exception as e:
        raise ReadError(f"membership read failed: {type(e).__name__}: {e}") from e


__all__ = ["EligibilityGate", "membership_gate"]
