"""
Respond-to-challenges task.

Same gate shape as the price duty, with two facts checked in order:

    trusted member?  ── no ─▶ skip
          │ yes
    challenged?      ── no ─▶ skip (clears the challenge gauge)
          │ yes
    challenge time   (ledger state read as of the observed height)
    responder.respond(node)

What "respond" means is pluggable:

- AlertResponder logs a warning and raises the challenges_active gauge so an
  operator is paged. This is the default.
- RebuttalResponder additionally sends a response transaction from the
  challenged member itself, which refutes the challenge while it is open.
"""

from __future__ import annotations

from typing import Any, Optional

from watchtower.errors import ReadError, SubmissionError, WatchtowerError
from watchtower.fanout import fan_out
from watchtower.fetcher import LedgerValueFetcher
from watchtower.gate import membership_gate
from watchtower.interfaces import Broadcaster, ChainReader, ChallengeResponder, TrustRegistry, Wallet
from watchtower.logging import get_logger
from watchtower.metrics import METRICS, Metrics
from watchtower.sync import wait_synced
from watchtower.tasks.base import BaseTask
from watchtower.types import Address, ChallengeAction, CycleOutcome, CycleResult


class AlertResponder:
    def __init__(self, *, metrics: Optional[Metrics] = None, logger: Optional[Any] = None) -> None:
        self._metrics = metrics or METRICS
        self._log = logger or get_logger(__name__)

    async def respond(self, identity: Address, height: Optional[int] = None) -> ChallengeAction:
        self._metrics.set_challenged(True)
        self._log.warning("challenge.active", node=identity, height=height)
        return ChallengeAction.ALERTED


class RebuttalResponder:
    def __init__(
        self,
        broadcaster: Broadcaster,
        *,
        alert: Optional[AlertResponder] = None,
        logger: Optional[Any] = None,
    ) -> None:
        self._broadcaster = broadcaster
        self._alert = alert or AlertResponder()
        self._log = logger or get_logger(__name__)

    async def respond(self, identity: Address, height: Optional[int] = None) -> ChallengeAction:
        await self._alert.respond(identity, height)
        try:
            receipt = await self._broadcaster.respond_challenge(identity)
        except SubmissionError:
            raise
        except Exception as e:
            raise SubmissionError(f"could not respond to challenge: {type(e).__name__}: {e}") from e
        if receipt.status != 1:
            raise SubmissionError("challenge response reverted", tx_hash=receipt.tx_hash)
        self._log.info("challenge.rebutted", node=identity, tx_hash=receipt.tx_hash)
        return ChallengeAction.REBUTTED


class RespondChallengesTask(BaseTask):
    name = "respond-challenges"

    def __init__(
        self,
        *,
        chain: ChainReader,
        registry: TrustRegistry,
        wallet: Wallet,
        responder: ChallengeResponder,
        challenged_since: Optional[LedgerValueFetcher] = None,
        sync_poll_s: float = 5.0,
        metrics: Optional[Metrics] = None,
        logger: Optional[Any] = None,
    ) -> None:
        super().__init__(metrics=metrics, logger=logger)
        self._chain = chain
        self._registry = registry
        self._wallet = wallet
        self._responder = responder
        self._challenged_since = challenged_since
        self._sync_poll_s = sync_poll_s

    async def run(self) -> CycleResult:
        await wait_synced(self._chain, poll_s=self._sync_poll_s, log=self.log)

        node = self._wallet.node_address()
        if not await membership_gate(self._registry, node):
            return CycleResult(task=self.name, outcome=CycleOutcome.SKIPPED, reason="not_trusted")

        self.log.debug("challenge.check", node=node)
        try:
            r = await fan_out(
                challenged=self._registry.is_challenged(node),
                height=self._chain.current_height(),
            )
        except WatchtowerError:
            raise
        except Exception as e:
            raise ReadError(f"challenge status read failed: {type(e).__name__}: {e}") from e
        if not r["challenged"]:
            self.metrics.set_challenged(False)
            return CycleResult(task=self.name, outcome=CycleOutcome.SKIPPED, reason="not_challenged")

        height = int(r["height"])
        since = await self._challenge_time(height)
        self.log.info("challenge.detected", node=node, height=height, challenged_since=since)
        action = await self._responder.respond(node, height)
        return CycleResult(
            task=self.name,
            outcome=CycleOutcome.RESPONDED,
            value=since,
            reason=action.value,
        )

    async def _challenge_time(self, height: int) -> Optional[int]:
        if self._challenged_since is None:
            return None
        raw = await self._challenged_since.fetch(height)
        return int(raw, 0) if isinstance(raw, str) else int(raw)


__all__ = ["AlertResponder", "RebuttalResponder", "RespondChallengesTask"]
