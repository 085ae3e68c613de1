"""
Wiring: config + node collaborators -> tasks -> scheduler.

This is the only place that knows which concrete collaborator backs which
task; tasks themselves only see the protocols in `watchtower.interfaces`.
"""

from __future__ import annotations

from typing import List, Optional

from watchtower.adapters import Collaborators
from watchtower.adapters.node import TRUSTED_NODE_DAO, ContractQuery, NodeChainReader
from watchtower.config import WatchtowerConfig
from watchtower.errors import ConfigurationError
from watchtower.fetcher import LedgerValueFetcher
from watchtower.metrics import Metrics
from watchtower.scheduler import SchedulerOptions, Watchtower
from watchtower.tasks import AlertResponder, RebuttalResponder, RespondChallengesTask, SubmitPriceTask
from watchtower.tasks.base import Task


def build_tasks(cfg: WatchtowerConfig, c: Collaborators, *, metrics: Optional[Metrics] = None) -> List[Task]:
    tasks: List[Task] = []
    poll = cfg.scheduler.sync_poll_s

    if cfg.price.enabled:
        if c.prices is None:
            raise ConfigurationError("price duty enabled but no price oracle configured")
        tasks.append(
            SubmitPriceTask(
                chain=c.chain,
                registry=c.registry,
                settings=c.settings,
                ledger=c.ledger,
                price_source=c.prices,
                broadcaster=c.broadcaster,
                wallet=c.wallet,
                pair=cfg.price.pair(),
                sync_poll_s=poll,
                metrics=metrics,
            )
        )

    if cfg.challenges.enabled:
        alert = AlertResponder(metrics=metrics)
        responder = RebuttalResponder(c.broadcaster, alert=alert) if cfg.challenges.respond else alert
        tasks.append(
            RespondChallengesTask(
                chain=c.chain,
                registry=c.registry,
                wallet=c.wallet,
                responder=responder,
                challenged_since=LedgerValueFetcher(
                    c.chain,
                    ContractQuery(TRUSTED_NODE_DAO, "getMemberChallengedTime", (c.wallet.node_address(),)),
                ),
                sync_poll_s=poll,
                metrics=metrics,
            )
        )

    if not tasks:
        raise ConfigurationError("no duties enabled (price.enabled and challenges.enabled are both false)")
    return tasks


def build_watchtower(cfg: WatchtowerConfig, c: Collaborators, *, metrics: Optional[Metrics] = None) -> Watchtower:
    return Watchtower(
        build_tasks(cfg, c, metrics=metrics),
        options=SchedulerOptions(
            interval_s=cfg.scheduler.interval_s,
            run_on_start=cfg.scheduler.run_on_start,
        ),
        metrics=metrics,
    )


async def check_chain_id(cfg: WatchtowerConfig, chain: NodeChainReader) -> None:
    """Refuse to start against a node on a different network than `cfg.chain_id`."""
    if cfg.chain_id is None:
        return
    actual = await chain.chain_id()
    if actual != cfg.chain_id:
        raise ConfigurationError(
            f"node reports chain id {actual}, configuration expects {cfg.chain_id}",
            details={"expected": cfg.chain_id, "actual": actual},
        )


__all__ = ["build_tasks", "build_watchtower", "check_chain_id"]
