"""
Submission executor: one signed transaction per call.

The executor does not deduplicate. The ledger's per-(node, checkpoint)
submitted flag is the only idempotency guard, and the gate re-reads it in the
same cycle right before this runs. A failed transaction leaves the flag unset,
so the next cycle re-evaluates and retries on its own.
"""

from __future__ import annotations

from watchtower.errors import SubmissionError
from watchtower.interfaces import Broadcaster, Wallet
from watchtower.types import Checkpoint, Receipt


class SubmissionExecutor:
    def __init__(self, broadcaster: Broadcaster, wallet: Wallet) -> None:
        self._broadcaster = broadcaster
        self._wallet = wallet

    async def submit(self, checkpoint: Checkpoint, value: int) -> Receipt:
        identity = self._wallet.node_address()
        try:
            receipt = await self._broadcaster.submit(checkpoint, value, identity)
        except SubmissionError:
            raise
        except Exception as e:
            raise SubmissionError(
                f"could not submit price: {type(e).__name__}: {e}",
                checkpoint=checkpoint,
            ) from e
        if receipt.status != 1:
            raise SubmissionError(
                "transaction reverted",
                checkpoint=checkpoint,
                tx_hash=receipt.tx_hash,
                details={"status": receipt.status},
            )
        return receipt


__all__ = ["SubmissionExecutor"]
