from __future__ import annotations

"""
Async HTTP JSON-RPC client.

- httpx.AsyncClient underneath; pass `transport=` to plug in httpx.MockTransport.
- Retries transport failures and 429/502/503/504 with jittered exponential
  backoff, for idempotent calls only (`retry=False` sends exactly once).
  A JSON-RPC error object is an application answer and is raised as
  RpcError immediately.
- Method names are configurable through RpcMethodMap so deployments with
  different naming (e.g. "chain_getHead") need no code change.

Example:
    async with AsyncJsonRpcClient("http://localhost:8545") as rpc:
        head = await rpc.call("chain.getHead")
        print(head["height"])
"""

import asyncio
import json
import logging
import random
from dataclasses import dataclass
from itertools import count
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import httpx

from watchtower.errors import RpcError
from watchtower.version import __version__

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]


@dataclass(frozen=True)
class RpcMethodMap:
    get_head: str = "chain.getHead"
    sync_status: str = "chain.syncStatus"
    chain_id: str = "chain.getChainId"
    state_call: str = "state.call"
    storage_get_bool: str = "state.getStorageBool"
    send_transaction: str = "tx.sendTransaction"
    get_receipt: str = "tx.getTransactionReceipt"


def _is_retriable_http(status: int) -> bool:
    return status in (429, 502, 503, 504)


def _jitter_backoff(base: float, attempt: int, jitter: float = 0.2) -> float:
    return base * (2 ** max(attempt - 1, 0)) + random.random() * jitter


class _Retriable(Exception):
    pass


class AsyncJsonRpcClient:
    """JSON-RPC 2.0 over HTTP, async."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        max_retries: int = 2,
        backoff_base: float = 0.2,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        methods: Optional[RpcMethodMap] = None,
    ) -> None:
        self.url = url
        self.max_retries = max(0, int(max_retries))
        self.backoff_base = max(0.0, float(backoff_base))
        self.methods = methods or RpcMethodMap()
        merged: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"animica-watchtower/{__version__}",
        }
        if headers:
            merged.update(dict(headers))
        self._ids = count(1)
        self._client = httpx.AsyncClient(timeout=timeout, headers=merged, transport=transport)

    # --- context manager -------------------------------------------------

    async def __aenter__(self) -> "AsyncJsonRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- public API ------------------------------------------------------

    async def call(self, method: str, params: Params = None, *, retry: bool = True) -> JSON:
        """
        Perform one JSON-RPC request and return `result` or raise RpcError.

        Pass `retry=False` for calls that are not idempotent (transaction
        broadcasts): a lost response must not send the request twice.
        """
        payload = self._make_payload(method, params)
        retries = self.max_retries if retry else 0
        last_exc: Optional[BaseException] = None
        for attempt in range(1, retries + 2):
            try:
                return await self._send_once(method, payload)
            except _Retriable as e:
                last_exc = e
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                last_exc = e
            if attempt > retries:
                break
            delay = _jitter_backoff(self.backoff_base, attempt)
            log.debug("rpc retry method=%s attempt=%d delay=%.3fs err=%s", method, attempt, delay, last_exc)
            await asyncio.sleep(delay)
        raise RpcError("RPC transport failed", method=method, rpc_code=-32098, data=str(last_exc)) from last_exc

    # --- internals -------------------------------------------------------

    def _make_payload(self, method: str, params: Params) -> Dict[str, Any]:
        if params is None:
            params = []
        elif isinstance(params, Mapping):
            params = dict(params)
        elif isinstance(params, Sequence) and not isinstance(params, (str, bytes, bytearray)):
            params = list(params)
        else:
            params = [params]
        return {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

    async def _send_once(self, method: str, payload: Dict[str, Any]) -> JSON:
        body = json.dumps(payload, separators=(",", ":"))
        r = await self._client.post(self.url, content=body)
        if _is_retriable_http(r.status_code):
            raise _Retriable(f"HTTP {r.status_code}")
        try:
            resp = r.json()
        except Exception as e:
            raise RpcError(
                "Non-JSON response from RPC",
                method=method,
                rpc_code=-32603,
                data=f"HTTP {r.status_code}: {r.text[:256]}",
            ) from e

        if not isinstance(resp, dict):
            raise RpcError("Invalid JSON-RPC response type", method=method, rpc_code=-32603, data=type(resp).__name__)
        if resp.get("error") is not None:
            err = resp["error"] or {}
            raise RpcError(
                str(err.get("message", "Unknown error")),
                method=method,
                rpc_code=int(err.get("code", -32603)),
                data=err.get("data"),
            )
        if "result" not in resp:
            raise RpcError("Malformed JSON-RPC response", method=method, rpc_code=-32603, data=resp)
        return resp["result"]


__all__ = ["AsyncJsonRpcClient", "RpcMethodMap"]
