"""
Submit-price task.

One cycle:

    SyncCheck ─▶ Standing ─┬─▶ Skip
                           └─▶ Checkpoint ─▶ GatherEligibility ─┬─▶ Skip
                                                                └─▶ FetchValue ─▶ Submit

- SyncCheck waits for the node to reach the network head (SyncError if the
  status check itself fails).
- Standing reads head height, submission frequency, membership and the duty
  flag concurrently. A non-member or a disabled duty skips here, before the
  frequency is validated.
- Checkpoint aligns the head down to the frequency (ConfigurationError on
  frequency 0).
- GatherEligibility reads the watermark and the node's submitted flag for
  that checkpoint concurrently, then applies the gate rule to the complete
  set of facts. A closed gate ends the cycle quietly with no writes.
- FetchValue reads the price pinned at the checkpoint height.
- Submit sends one transaction.

Each run starts from scratch; restart safety comes from re-reading the
ledger's submitted flag every time.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from watchtower.checkpoint import next_checkpoint, reportable_checkpoint
from watchtower.errors import ReadError, SubmissionError, WatchtowerError
from watchtower.fanout import fan_out
from watchtower.fetcher import PriceFetcher
from watchtower.gate import EligibilityGate
from watchtower.interfaces import (
    Broadcaster,
    ChainReader,
    PriceSource,
    ProtocolSettings,
    SubmissionLedger,
    TrustRegistry,
    Wallet,
)
from watchtower.metrics import Metrics
from watchtower.submitter import SubmissionExecutor
from watchtower.sync import wait_synced
from watchtower.tasks.base import BaseTask
from watchtower.types import Address, CycleOutcome, CycleResult, TokenPair

WEI_PER_ETH = 10**18


def format_price(wei: int, places: int = 6) -> str:
    """Round a wei-denominated price *down* to `places` decimals."""
    scale = 10**places
    whole, frac = divmod(wei * scale // WEI_PER_ETH, scale)
    return f"{whole}.{frac:0{places}d}"


class SubmitPriceTask(BaseTask):
    name = "submit-price"

    def __init__(
        self,
        *,
        chain: ChainReader,
        registry: TrustRegistry,
        settings: ProtocolSettings,
        ledger: SubmissionLedger,
        price_source: PriceSource,
        broadcaster: Broadcaster,
        wallet: Wallet,
        pair: TokenPair,
        sync_poll_s: float = 5.0,
        metrics: Optional[Metrics] = None,
        logger: Optional[Any] = None,
    ) -> None:
        super().__init__(metrics=metrics, logger=logger)
        self._chain = chain
        self._registry = registry
        self._settings = settings
        self._wallet = wallet
        self._sync_poll_s = sync_poll_s
        self.gate = EligibilityGate(registry=registry, settings=settings, ledger=ledger)
        self.fetcher = PriceFetcher(price_source, pair)
        self.executor = SubmissionExecutor(broadcaster, wallet)

    async def run(self) -> CycleResult:
        await wait_synced(self._chain, poll_s=self._sync_poll_s, log=self.log)

        node = self._wallet.node_address()
        r = await self._read_standing(node)
        if not r["member"] or not r["enabled"]:
            reason = "not_trusted" if not r["member"] else "disabled"
            self.log.debug("price.skip", reason=reason)
            return CycleResult(task=self.name, outcome=CycleOutcome.SKIPPED, reason=reason)

        height, frequency = int(r["height"]), int(r["frequency"])
        checkpoint = reportable_checkpoint(height, frequency)
        self.log.debug("price.checkpoint", checkpoint=checkpoint, node=node)

        facts = await self.gate.facts(node, checkpoint, member=r["member"], enabled=r["enabled"])
        if not facts.proceed:
            self.log.debug(
                "price.skip",
                checkpoint=checkpoint,
                reason=facts.reason(),
                next_checkpoint=next_checkpoint(height, frequency),
            )
            return CycleResult(
                task=self.name,
                outcome=CycleOutcome.SKIPPED,
                checkpoint=checkpoint,
                reason=facts.reason(),
            )

        self.log.info("price.fetch", checkpoint=checkpoint)
        price = await self.fetcher.fetch(checkpoint)
        self.log.info("price.value", checkpoint=checkpoint, price_eth=format_price(price))

        self.log.info("price.submitting", checkpoint=checkpoint)
        try:
            receipt = await self.executor.submit(checkpoint, price)
        except SubmissionError:
            self.metrics.record_submission("failed")
            raise
        self.metrics.record_submission("accepted", checkpoint)
        self.log.info("price.submitted", checkpoint=checkpoint, tx_hash=receipt.tx_hash)

        return CycleResult(
            task=self.name,
            outcome=CycleOutcome.SUBMITTED,
            checkpoint=checkpoint,
            value=price,
            receipt=receipt,
        )

    async def _read_standing(self, node: Address) -> Mapping[str, Any]:
        """Head height, frequency, membership and the duty flag, joined in one fan-out."""
        try:
            return await fan_out(
                height=self._chain.current_height(),
                frequency=self._settings.submission_frequency(),
                member=self._registry.is_member(node),
                enabled=self._settings.submission_enabled(),
            )
        except WatchtowerError:
            raise
        except Exception as e:
            raise ReadError(f"could not read cycle inputs: {type(e).__name__}: {e}") from e


__all__ = ["SubmitPriceTask", "format_price"]
