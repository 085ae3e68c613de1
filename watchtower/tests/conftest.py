"""In-memory collaborators shared by the watchtower tests."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from prometheus_client import CollectorRegistry

from watchtower.errors import SubmissionError
from watchtower.metrics import Metrics
from watchtower.types import Address, Checkpoint, Receipt, TokenPair

NODE = "0x" + "11" * 20
TOKEN = "0x" + "22" * 20
ORACLE = "0x" + "33" * 20


class FakeChain:
    def __init__(self, height: int = 1000, synced: Optional[List[bool]] = None) -> None:
        self.height = height
        self._synced = list(synced or [True])
        self.sync_checks = 0
        self.reads: List[Tuple[int, Any]] = []
        self.values: Dict[Any, Any] = {}

    async def current_height(self) -> int:
        return self.height

    async def is_synced(self) -> bool:
        self.sync_checks += 1
        return self._synced.pop(0) if len(self._synced) > 1 else self._synced[0]

    async def read_as_of(self, height: int, query: Any) -> Any:
        self.reads.append((height, query))
        return self.values[query]


class FakeRegistry:
    def __init__(self, member: bool = True, challenged: bool = False) -> None:
        self.member = member
        self.challenged = challenged

    async def is_member(self, address: Address) -> bool:
        return self.member

    async def is_challenged(self, address: Address) -> bool:
        return self.challenged


class FakeSettings:
    def __init__(self, frequency: int = 100, enabled: bool = True) -> None:
        self.frequency = frequency
        self.enabled = enabled
        self.enabled_error: Optional[BaseException] = None

    async def submission_frequency(self) -> int:
        return self.frequency

    async def submission_enabled(self) -> bool:
        if self.enabled_error is not None:
            raise self.enabled_error
        return self.enabled


class FakeLedger:
    def __init__(self, watermark: Checkpoint = 900) -> None:
        self._watermark = watermark
        self.submitted: Set[Tuple[Address, Checkpoint]] = set()
        self.flag_error: Optional[BaseException] = None

    async def watermark(self) -> Checkpoint:
        return self._watermark

    async def has_submitted(self, address: Address, checkpoint: Checkpoint) -> bool:
        if self.flag_error is not None:
            raise self.flag_error
        return (address, checkpoint) in self.submitted


class FakePrices:
    def __init__(self, value: int = 2 * 10**16) -> None:
        self.value = value
        self.calls: List[Tuple[TokenPair, int]] = []

    async def rate(self, pair: TokenPair, as_of_height: int) -> int:
        self.calls.append((pair, as_of_height))
        return self.value


class FakeBroadcaster:
    """Records transactions; an accepted price submission sets the ledger flag."""

    def __init__(self, ledger: Optional[FakeLedger] = None) -> None:
        self.ledger = ledger
        self.submits: List[Tuple[Checkpoint, int, Address]] = []
        self.responses: List[Address] = []
        self.fail_next = 0
        self.status = 1

    async def submit(self, checkpoint: Checkpoint, value: int, identity: Address) -> Receipt:
        self.submits.append((checkpoint, value, identity))
        if self.fail_next:
            self.fail_next -= 1
            raise SubmissionError("nonce too low", checkpoint=checkpoint)
        if self.status == 1 and self.ledger is not None:
            self.ledger.submitted.add((identity, checkpoint))
        return Receipt(tx_hash=f"0x{len(self.submits):064x}", block_height=checkpoint + 1, status=self.status)

    async def respond_challenge(self, identity: Address) -> Receipt:
        self.responses.append(identity)
        return Receipt(tx_hash="0x" + "ab" * 32, status=self.status)


class FakeWallet:
    def __init__(self, address: Address = NODE) -> None:
        self.address = address

    def node_address(self) -> Address:
        return self.address


@pytest.fixture
def metrics() -> Metrics:
    return Metrics(registry=CollectorRegistry())


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def settings() -> FakeSettings:
    return FakeSettings()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def prices() -> FakePrices:
    return FakePrices()


@pytest.fixture
def broadcaster(ledger: FakeLedger) -> FakeBroadcaster:
    return FakeBroadcaster(ledger)


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()
