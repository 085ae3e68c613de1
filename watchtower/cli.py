from __future__ import annotations

"""
watchtower.cli
--------------

Operator entry point.

Examples
--------
# Run all enabled duties on their interval (config from env)
python -m watchtower run

# One price cycle against a config file; exit 1 if the cycle failed
python -m watchtower once price --config watchtower.yaml

# Which checkpoint does height 12345 fall in with frequency 5760?
python -m watchtower checkpoint 12345 5760

# Governance proposals view
python -m watchtower proposals --config watchtower.yaml
"""

import asyncio
import json
from enum import Enum
from typing import Optional

import typer

from watchtower.adapters import build_collaborators, open_rpc
from watchtower.app import build_watchtower, check_chain_id
from watchtower.checkpoint import reportable_checkpoint
from watchtower.config import WatchtowerConfig
from watchtower.errors import ConfigurationError, WatchtowerError
from watchtower.logging import setup_logging
from watchtower.metrics import METRICS
from watchtower.proposals import DelegationReader, SnapshotClient, active_proposals_view
from watchtower.version import __version__

app = typer.Typer(
    name="watchtower",
    add_completion=False,
    no_args_is_help=True,
    help="Trusted-node watchtower: checkpointed price submission and challenge response.",
)


class Duty(str, Enum):
    price = "price"
    challenges = "challenges"


_DUTY_TASK = {Duty.price: "submit-price", Duty.challenges: "respond-challenges"}


def _load(config: Optional[str]) -> WatchtowerConfig:
    try:
        return WatchtowerConfig.from_file(config) if config else WatchtowerConfig.from_env()
    except WatchtowerError as e:
        typer.secho(f"config error: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2)


@app.command()
def version() -> None:
    """Print the package version."""
    typer.echo(__version__)


@app.command()
def checkpoint(
    height: int = typer.Argument(..., min=0, help="Current chain height."),
    frequency: int = typer.Argument(..., help="Submission frequency in blocks."),
) -> None:
    """Print the reportable checkpoint for HEIGHT and FREQUENCY."""
    try:
        typer.echo(reportable_checkpoint(height, frequency))
    except WatchtowerError as e:
        typer.secho(str(e), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2)


@app.command("show-config")
def show_config(config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML config file.")) -> None:
    """Print the effective configuration as JSON."""
    typer.echo(_load(config).to_json())


@app.command()
def run(config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML config file.")) -> None:
    """Run enabled duties on their interval until SIGINT/SIGTERM."""
    cfg = _load(config)
    setup_logging(level=cfg.logging.level, log_format=cfg.logging.format)
    if cfg.metrics.enabled:
        METRICS.serve(cfg.metrics.host, cfg.metrics.port)

    async def _main() -> None:
        async with open_rpc(cfg) as rpc:
            c = build_collaborators(cfg, rpc)
            await check_chain_id(cfg, c.chain)
            wt = build_watchtower(cfg, c)
            await wt.run_until_stopped()

    try:
        asyncio.run(_main())
    except ConfigurationError as e:
        typer.secho(f"config error: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2)


@app.command()
def once(
    duty: Duty = typer.Argument(..., help="Which duty to run."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML config file."),
) -> None:
    """Run a single cycle of DUTY. Exit 0 on success or skip, 1 on a cycle error."""
    cfg = _load(config)
    setup_logging(level=cfg.logging.level, log_format=cfg.logging.format)
    name = _DUTY_TASK[duty]

    async def _main():
        async with open_rpc(cfg) as rpc:
            c = build_collaborators(cfg, rpc)
            await check_chain_id(cfg, c.chain)
            wt = build_watchtower(cfg, c)
            if name not in wt.tasks:
                raise typer.BadParameter(f"duty {duty.value!r} is disabled in the configuration")
            return await wt.run_once(name)

    try:
        result = asyncio.run(_main())
    except WatchtowerError as e:
        typer.echo(json.dumps({"ok": False, "error": e.to_dict()}, default=str))
        raise typer.Exit(code=1)
    typer.echo(
        json.dumps(
            {
                "ok": True,
                "task": result.task,
                "outcome": result.outcome.value,
                "checkpoint": result.checkpoint,
                "value": str(result.value) if result.value is not None else None,
                "tx_hash": result.receipt.tx_hash if result.receipt else None,
                "reason": result.reason,
            }
        )
    )


@app.command()
def proposals(config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML config file.")) -> None:
    """Print active governance proposals, the node's delegate and cast votes as JSON."""
    cfg = _load(config)

    async def _main():
        snapshot = SnapshotClient(cfg.governance.snapshot_api, timeout=cfg.rpc.timeout_s)
        try:
            async with open_rpc(cfg) as rpc:
                delegation = None
                if cfg.governance.delegation_address:
                    delegation = DelegationReader(build_collaborators(cfg, rpc).chain, cfg.governance.delegation_address)
                return await active_proposals_view(
                    account=str(cfg.node_address),
                    space=cfg.governance.space,
                    snapshot=snapshot,
                    delegation=delegation,
                )
        finally:
            await snapshot.aclose()

    try:
        view = asyncio.run(_main())
    except WatchtowerError as e:
        typer.secho(str(e), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(view.to_dict(), indent=2, sort_keys=True))


def main() -> None:  # pragma: no cover - console script
    app()


__all__ = ["app", "main"]
