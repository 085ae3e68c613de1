from __future__ import annotations

"""
watchtower.adapters.wallet
==========================

Identity and transaction sending for a node-managed account.

Key custody is not handled here: the node (or a signer it fronts) holds the
key for `node_address` and signs `tx.sendTransaction` requests from it. This
module only builds the request, sends it once, and waits for the receipt.

- NodeWallet: returns the configured node address.
- RpcBroadcaster: `submitPrices(checkpoint, value)` and `actionChallengeDecide(node)`
  transactions (a challenged member deciding its own challenge refutes it);
  polls `tx.getTransactionReceipt` until mined.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from watchtower.adapters.node import NETWORK_PRICES, TRUSTED_NODE_DAO, to_int
from watchtower.adapters.rpc import AsyncJsonRpcClient
from watchtower.errors import SubmissionError
from watchtower.types import Address, Checkpoint, Receipt

log = logging.getLogger(__name__)


class NodeWallet:
    def __init__(self, address: Address) -> None:
        self._address = address

    def node_address(self) -> Address:
        return self._address


class RpcBroadcaster:
    def __init__(
        self,
        rpc: AsyncJsonRpcClient,
        *,
        prices_contract: str = NETWORK_PRICES,
        trusted_dao_contract: str = TRUSTED_NODE_DAO,
        receipt_timeout_s: float = 180.0,
        poll_interval_s: float = 2.0,
    ) -> None:
        self._rpc = rpc
        self._m = rpc.methods
        self._prices = prices_contract
        self._dao = trusted_dao_contract
        self._receipt_timeout_s = float(receipt_timeout_s)
        self._poll_interval_s = float(poll_interval_s)

    async def submit(self, checkpoint: Checkpoint, value: int, identity: Address) -> Receipt:
        return await self._transact(
            identity, self._prices, "submitPrices", [int(checkpoint), str(value)], checkpoint=checkpoint
        )

    async def respond_challenge(self, identity: Address) -> Receipt:
        return await self._transact(identity, self._dao, "actionChallengeDecide", [identity])

    async def _transact(
        self,
        sender: Address,
        to: str,
        fn: str,
        args: list,
        *,
        checkpoint: Optional[Checkpoint] = None,
    ) -> Receipt:
        try:
            tx_hash = await self._rpc.call(
                self._m.send_transaction,
                {"from": sender, "to": to, "fn": fn, "args": args},
                retry=False,
            )
        except Exception as e:
            raise SubmissionError(f"{fn} broadcast failed: {e}", checkpoint=checkpoint) from e
        if not isinstance(tx_hash, str):
            raise SubmissionError(f"unexpected sendTransaction result: {tx_hash!r}", checkpoint=checkpoint)
        log.debug("tx sent fn=%s hash=%s", fn, tx_hash)

        raw = await self._wait_for_receipt(tx_hash, checkpoint)
        status = to_int(raw.get("status", 0))
        height = raw.get("blockNumber", raw.get("height"))
        receipt = Receipt(
            tx_hash=tx_hash,
            block_height=to_int(height) if height is not None else None,
            status=status,
            raw=raw,
        )
        if status != 1:
            raise SubmissionError(f"{fn} reverted", checkpoint=checkpoint, tx_hash=tx_hash, details={"status": status})
        return receipt

    async def _wait_for_receipt(self, tx_hash: str, checkpoint: Optional[Checkpoint]) -> Dict[str, Any]:
        deadline = time.monotonic() + self._receipt_timeout_s
        while True:
            try:
                rec = await self._rpc.call(self._m.get_receipt, [tx_hash])
            except Exception as e:
                raise SubmissionError(f"receipt lookup failed: {e}", checkpoint=checkpoint, tx_hash=tx_hash) from e
            if isinstance(rec, dict) and "receipt" in rec and isinstance(rec["receipt"], dict):
                rec = rec["receipt"]
            if isinstance(rec, dict) and rec:
                return rec
            if time.monotonic() >= deadline:
                raise SubmissionError(
                    f"timeout waiting for receipt after {self._receipt_timeout_s:.0f}s",
                    checkpoint=checkpoint,
                    tx_hash=tx_hash,
                )
            await asyncio.sleep(self._poll_interval_s)


__all__ = ["NodeWallet", "RpcBroadcaster"]
