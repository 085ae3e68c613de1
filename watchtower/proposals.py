"""
Governance proposals view.

Read-only composition of:
- active proposals for a Snapshot space (hub GraphQL API),
- the node's voting delegate (on-chain delegation registry, keyed by the
  space id encoded as bytes32),
- votes already cast on those proposals by the node or its delegate.

No transaction is sent and nothing needs to be idempotent. Proposals and the
delegate lookup run concurrently; the vote query needs the delegate first.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from watchtower.adapters.node import ContractQuery, NodeChainReader
from watchtower.errors import ReadError
from watchtower.fanout import fan_out
from watchtower.types import Address

ZERO_ADDRESS = "0x" + "00" * 20

_PROPOSALS_QUERY = """
query Proposals($space: String!, $state: String!) {
  proposals(where: {space: $space, state: $state}, orderBy: "end", orderDirection: asc) {
    id title choices start end snapshot state author
    scores scores_total quorum
  }
}
"""

_VOTES_QUERY = """
query Votes($space: String!, $voters: [String!]!) {
  votes(where: {space: $space, voter_in: $voters}, first: 1000) {
    id voter created choice
    proposal { id state }
  }
}
"""


def space_id(space: str) -> str:
    """Snapshot space name as a right-padded bytes32 hex string."""
    raw = space.encode("utf-8")
    if len(raw) > 32:
        raise ValueError("space name longer than 32 bytes")
    return "0x" + raw.ljust(32, b"\x00").hex()


@dataclass(frozen=True)
class Proposal:
    id: str
    title: str
    state: str
    start: int
    end: int
    choices: List[str] = field(default_factory=list)
    scores: List[float] = field(default_factory=list)
    scores_total: float = 0.0
    quorum: float = 0.0

    @staticmethod
    def from_json(d: Dict[str, Any]) -> "Proposal":
        return Proposal(
            id=str(d["id"]),
            title=str(d.get("title", "")),
            state=str(d.get("state", "")),
            start=int(d.get("start") or 0),
            end=int(d.get("end") or 0),
            choices=list(d.get("choices") or []),
            scores=[float(s) for s in (d.get("scores") or [])],
            scores_total=float(d.get("scores_total") or 0.0),
            quorum=float(d.get("quorum") or 0.0),
        )


@dataclass(frozen=True)
class Vote:
    id: str
    voter: Address
    proposal_id: str
    choice: Any
    created: int

    @staticmethod
    def from_json(d: Dict[str, Any]) -> "Vote":
        return Vote(
            id=str(d["id"]),
            voter=str(d.get("voter", "")),
            proposal_id=str((d.get("proposal") or {}).get("id", "")),
            choice=d.get("choice"),
            created=int(d.get("created") or 0),
        )


@dataclass(frozen=True)
class DAOProposalsView:
    account: Address
    delegate: Address
    proposals: List[Proposal]
    votes: List[Vote]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SnapshotClient:
    def __init__(self, api_url: str, *, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0) -> None:
        self._url = api_url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _query(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            r = await self._client.post(self._url, json={"query": query, "variables": variables})
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ReadError(f"snapshot query failed: {e}", details={"url": self._url}) from e
        if body.get("errors"):
            raise ReadError("snapshot query returned errors", details={"errors": body["errors"]})
        return body.get("data") or {}

    async def proposals(self, space: str, state: str = "active") -> List[Proposal]:
        data = await self._query(_PROPOSALS_QUERY, {"space": space, "state": state})
        return [Proposal.from_json(p) for p in data.get("proposals") or []]

    async def votes(self, space: str, voters: List[Address]) -> List[Vote]:
        data = await self._query(_VOTES_QUERY, {"space": space, "voters": voters})
        return [Vote.from_json(v) for v in data.get("votes") or []]


class DelegationReader:
    def __init__(self, chain: NodeChainReader, delegation_address: str) -> None:
        self._chain = chain
        self._contract = delegation_address

    async def delegate_of(self, account: Address, space: str) -> Address:
        res = await self._chain.call(ContractQuery(self._contract, "delegation", (account, space_id(space))))
        return str(res or ZERO_ADDRESS)


async def active_proposals_view(
    *,
    account: Address,
    space: str,
    snapshot: SnapshotClient,
    delegation: Optional[DelegationReader],
) -> DAOProposalsView:
    if delegation is not None:
        r = await fan_out(
            proposals=snapshot.proposals(space, "active"),
            delegate=delegation.delegate_of(account, space),
        )
        proposals, delegate = r["proposals"], r["delegate"]
    else:
        proposals, delegate = await snapshot.proposals(space, "active"), ZERO_ADDRESS

    voters = [account] if delegate.lower() == ZERO_ADDRESS else [account, delegate]
    active_ids = {p.id for p in proposals}
    votes = [v for v in await snapshot.votes(space, voters) if v.proposal_id in active_ids]
    return DAOProposalsView(account=account, delegate=delegate, proposals=proposals, votes=votes)


__all__ = [
    "Proposal",
    "Vote",
    "DAOProposalsView",
    "SnapshotClient",
    "DelegationReader",
    "active_proposals_view",
    "space_id",
]
