import json

import httpx
import pytest

from watchtower.adapters import NodeChainReader, NodeSettings, NodeSubmissionLedger, NodeTrustRegistry, RpcPriceSource
from watchtower.adapters.node import ContractQuery, keccak256, submitted_key, to_int
from watchtower.adapters.rpc import AsyncJsonRpcClient
from watchtower.adapters.wallet import RpcBroadcaster
from watchtower.errors import HistoryUnavailable, NotSynced, RpcError, SourceUnavailableError, SubmissionError
from watchtower.types import TokenPair

from watchtower.tests.conftest import NODE, ORACLE, TOKEN


class Node:
    """Scripted JSON-RPC endpoint for httpx.MockTransport."""

    def __init__(self, handlers):
        self.handlers = handlers
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        out = self.handlers[body["method"]]
        if callable(out):
            out = out(body["params"])
        if isinstance(out, httpx.Response):
            return out
        if isinstance(out, dict) and "error" in out:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": out["error"]})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": out})


def _client(node, **kw):
    kw.setdefault("backoff_base", 0.0)
    return AsyncJsonRpcClient("http://node.test", transport=httpx.MockTransport(node), **kw)


def test_keccak_empty_vector():
    assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_submitted_key_depends_on_node_and_checkpoint():
    k = submitted_key(NODE, 1000)
    assert k.startswith("0x") and len(k) == 66
    assert k == submitted_key(NODE[2:], 1000)
    assert k != submitted_key(NODE, 1100)
    assert k != submitted_key(TOKEN, 1000)
    with pytest.raises(ValueError):
        submitted_key("0x1234", 1000)


def test_to_int():
    assert to_int(5) == 5
    assert to_int("0x10") == 16
    assert to_int("42") == 42
    with pytest.raises(TypeError):
        to_int(True)


@pytest.mark.asyncio
async def test_retries_retriable_http_status_then_succeeds():
    attempts = []

    def head(params):
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503)
        return {"height": "0x3e8"}

    async with _client(Node({"chain.getHead": head}), max_retries=2) as rpc:
        assert await NodeChainReader(rpc).current_height() == 1000
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_exhausted_retries_raise_transport_error():
    async with _client(Node({"chain.getHead": lambda p: httpx.Response(502)}), max_retries=1) as rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.call("chain.getHead")
    assert ei.value.rpc_code == -32098


@pytest.mark.asyncio
async def test_error_object_is_not_retried():
    node = Node({"chain.getHead": {"error": {"code": -32601, "message": "method not found"}}})
    async with _client(node, max_retries=3) as rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.call("chain.getHead")
    assert ei.value.rpc_code == -32601
    assert len(node.requests) == 1


@pytest.mark.asyncio
async def test_non_json_response():
    async with _client(Node({"chain.getHead": lambda p: httpx.Response(200, text="<html>")})) as rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.call("chain.getHead")
    assert ei.value.rpc_code == -32603


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,synced",
    [
        (False, True),
        ({"syncing": True}, False),
        ({"syncing": False}, True),
        ({"currentHeight": 90, "highestHeight": 100}, False),
        ({"currentHeight": "0x64", "highestHeight": 100}, True),
    ],
)
async def test_is_synced_shapes(status, synced):
    async with _client(Node({"chain.syncStatus": status})) as rpc:
        assert await NodeChainReader(rpc).is_synced() is synced


@pytest.mark.asyncio
async def test_contract_reads_go_through_state_call():
    def state_call(p):
        return {
            "getMemberExists": True,
            "getMemberIsChallenged": False,
            "getSubmitPricesFrequency": "0x1680",
            "getSubmitPricesEnabled": True,
            "getPricesBlock": 5760,
        }[p["fn"]]

    node = Node({"state.call": state_call, "state.getStorageBool": lambda p: p[0] == submitted_key(NODE, 11520)})
    async with _client(node) as rpc:
        chain = NodeChainReader(rpc)
        assert await NodeTrustRegistry(chain).is_member(NODE) is True
        assert await NodeTrustRegistry(chain).is_challenged(NODE) is False
        assert await NodeSettings(chain).submission_frequency() == 5760
        assert await NodeSettings(chain).submission_enabled() is True
        ledger = NodeSubmissionLedger(chain)
        assert await ledger.watermark() == 5760
        assert await ledger.has_submitted(NODE, 11520) is True
        assert await ledger.has_submitted(NODE, 17280) is False

    first = node.requests[0]["params"]
    assert first == {"to": "rocketDAONodeTrusted", "fn": "getMemberExists", "args": [NODE]}


@pytest.mark.asyncio
async def test_pruned_state_is_history_unavailable():
    node = Node({"chain.getHead": {"height": 2000}, "state.call": {"error": {"code": -32000, "message": "missing trie node abc"}}})
    async with _client(node) as rpc:
        chain = NodeChainReader(rpc)
        with pytest.raises(HistoryUnavailable) as ei:
            await chain.read_as_of(1000, ContractQuery(ORACLE, "getRate"))
        assert ei.value.height == 1000
        with pytest.raises(RpcError) as ei2:
            await chain.call(ContractQuery(ORACLE, "getRate"))
        assert not isinstance(ei2.value, HistoryUnavailable)


@pytest.mark.asyncio
async def test_as_of_read_ahead_of_head_is_not_synced():
    node = Node({"chain.getHead": {"height": 900}, "state.call": 1})
    async with _client(node) as rpc:
        with pytest.raises(NotSynced) as ei:
            await NodeChainReader(rpc).read_as_of(1000, ContractQuery(ORACLE, "getRate"))
    assert ei.value.details == {"head": 900, "height": 1000}
    assert [r["method"] for r in node.requests] == ["chain.getHead"]


@pytest.mark.asyncio
async def test_price_source_lets_not_synced_through():
    node = Node({"chain.getHead": {"height": 900}})
    async with _client(node) as rpc:
        with pytest.raises(NotSynced):
            await RpcPriceSource(NodeChainReader(rpc), ORACLE).rate(TokenPair(base=TOKEN), 1000)


@pytest.mark.asyncio
async def test_price_source_pins_height():
    node = Node({"chain.getHead": {"height": 2000}, "state.call": "0x470de4df820000"})
    async with _client(node) as rpc:
        rate = await RpcPriceSource(NodeChainReader(rpc), ORACLE).rate(TokenPair(base=TOKEN), 1000)
    assert rate == 20000000000000000
    calls = [r for r in node.requests if r["method"] == "state.call"]
    assert calls[0]["params"] == {
        "to": ORACLE,
        "fn": "getRate",
        "args": [TOKEN, "0x" + "00" * 20],
        "height": 1000,
    }


@pytest.mark.asyncio
async def test_price_source_failure_is_source_unavailable():
    node = Node({"chain.getHead": {"height": 2000}, "state.call": {"error": {"code": -32000, "message": "execution reverted"}}})
    async with _client(node) as rpc:
        with pytest.raises(SourceUnavailableError) as ei:
            await RpcPriceSource(NodeChainReader(rpc), ORACLE).rate(TokenPair(base=TOKEN), 1000)
    assert ei.value.checkpoint == 1000


@pytest.mark.asyncio
async def test_broadcaster_waits_for_receipt():
    polls = []

    def receipt(params):
        polls.append(params[0])
        if len(polls) == 1:
            return None
        return {"receipt": {"status": "0x1", "blockNumber": "0x3e9"}}

    node = Node({"tx.sendTransaction": "0x" + "aa" * 32, "tx.getTransactionReceipt": receipt})
    async with _client(node) as rpc:
        rec = await RpcBroadcaster(rpc, poll_interval_s=0.0).submit(1000, 123, NODE)

    assert rec.tx_hash == "0x" + "aa" * 32
    assert rec.block_height == 1001
    assert node.requests[0]["params"] == {
        "from": NODE,
        "to": "rocketNetworkPrices",
        "fn": "submitPrices",
        "args": [1000, "123"],
    }
    assert len(polls) == 2


@pytest.mark.asyncio
async def test_broadcaster_reverted_transaction():
    node = Node({"tx.sendTransaction": "0x" + "bb" * 32, "tx.getTransactionReceipt": {"status": 0}})
    async with _client(node) as rpc:
        with pytest.raises(SubmissionError) as ei:
            await RpcBroadcaster(rpc).submit(1000, 123, NODE)
    assert ei.value.tx_hash == "0x" + "bb" * 32
    assert ei.value.checkpoint == 1000


@pytest.mark.asyncio
async def test_broadcaster_send_failure():
    node = Node({"tx.sendTransaction": {"error": {"code": -32000, "message": "insufficient funds"}}})
    async with _client(node) as rpc:
        with pytest.raises(SubmissionError, match="insufficient funds"):
            await RpcBroadcaster(rpc).submit(1000, 123, NODE)


@pytest.mark.asyncio
async def test_challenge_response_transaction():
    node = Node({"tx.sendTransaction": "0x" + "cc" * 32, "tx.getTransactionReceipt": {"status": 1}})
    async with _client(node) as rpc:
        rec = await RpcBroadcaster(rpc).respond_challenge(NODE)
    assert rec.status == 1
    assert node.requests[0]["params"]["fn"] == "actionChallengeDecide"
    assert node.requests[0]["params"]["args"] == [NODE]


@pytest.mark.asyncio
async def test_broadcast_is_sent_once_when_the_response_is_lost():
    sends = []

    def handler(request):
        body = json.loads(request.content)
        if body["method"] == "tx.sendTransaction":
            sends.append(body)
            if len(sends) == 1:
                raise httpx.ReadTimeout("response lost", request=request)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x" + "dd" * 32})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"status": 1}})

    rpc = AsyncJsonRpcClient("http://node.test", transport=httpx.MockTransport(handler), max_retries=3, backoff_base=0.0)
    async with rpc:
        with pytest.raises(SubmissionError) as ei:
            await RpcBroadcaster(rpc).submit(1000, 5, NODE)
    assert len(sends) == 1
    assert ei.value.checkpoint == 1000


@pytest.mark.asyncio
async def test_broadcast_is_not_retried_on_gateway_errors():
    node = Node({"tx.sendTransaction": lambda p: httpx.Response(503)})
    async with _client(node, max_retries=3) as rpc:
        with pytest.raises(SubmissionError):
            await RpcBroadcaster(rpc).respond_challenge(NODE)
    assert len(node.requests) == 1


@pytest.mark.asyncio
async def test_call_without_retry_surfaces_transport_error():
    node = Node({"chain.getHead": lambda p: httpx.Response(502)})
    async with _client(node, max_retries=3) as rpc:
        with pytest.raises(RpcError) as ei:
            await rpc.call("chain.getHead", retry=False)
    assert ei.value.rpc_code == -32098
    assert len(node.requests) == 1
