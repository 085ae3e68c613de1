"""
Watchtower configuration.

Typed dataclass configs with validation for:
- Node RPC access (URL, timeout, retry knobs)
- The price duty (token pair, oracle contract)
- The challenge duty (alert-only or rebuttal transaction)
- Scheduling (cycle interval, sync polling)
- Metrics exporter and logging

Loaders:
- `WatchtowerConfig.from_env(prefix="WATCHTOWER_")`
- `WatchtowerConfig.from_file(path)`: JSON, or YAML when PyYAML is installed

Invalid values raise ConfigurationError.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from watchtower.errors import ConfigurationError
from watchtower.types import TokenPair

NATIVE_TOKEN = "0x" + "00" * 20

_RPC_METHOD_KEYS = (
    "get_head",
    "sync_status",
    "chain_id",
    "state_call",
    "storage_get_bool",
    "send_transaction",
    "get_receipt",
)


def _is_address(s: Optional[str]) -> bool:
    if not isinstance(s, str) or not s.startswith("0x") or len(s) != 42:
        return False
    try:
        int(s[2:], 16)
    except ValueError:
        return False
    return True


# -------------------------
# Sub-configs
# -------------------------


@dataclass
class RpcConfig:
    """
    url: node JSON-RPC endpoint (http/https)
    timeout_s: per-request timeout handed to the HTTP client
    max_retries: retries for transport errors and 429/5xx (application errors never retry)
    backoff_s: base delay of the jittered exponential backoff
    methods: JSON-RPC method name overrides, keyed by RpcMethodMap field
    """

    url: str = "http://127.0.0.1:8545"
    timeout_s: float = 10.0
    max_retries: int = 2
    backoff_s: float = 0.2
    methods: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        u = urlparse(self.url)
        if u.scheme not in {"http", "https"} or not u.netloc:
            raise ConfigurationError(f"rpc.url must be an http(s) URL: {self.url!r}")
        if self.timeout_s <= 0:
            raise ConfigurationError("rpc.timeout_s must be > 0")
        if self.max_retries < 0:
            raise ConfigurationError("rpc.max_retries must be >= 0")
        if self.backoff_s < 0:
            raise ConfigurationError("rpc.backoff_s must be >= 0")
        unknown = set(self.methods) - set(_RPC_METHOD_KEYS)
        if unknown:
            raise ConfigurationError(f"rpc.methods has unknown keys: {sorted(unknown)}")


@dataclass
class PriceConfig:
    """
    token: address of the token being priced
    quote: address of the quote token (native coin by default)
    oracle_address: price oracle contract queried with an as-of height
    """

    enabled: bool = True
    token: Optional[str] = None
    quote: str = NATIVE_TOKEN
    oracle_address: Optional[str] = None

    def validate(self) -> None:
        if not self.enabled:
            return
        if not _is_address(self.token):
            raise ConfigurationError(f"price.token must be a 0x address: {self.token!r}")
        if not _is_address(self.quote):
            raise ConfigurationError(f"price.quote must be a 0x address: {self.quote!r}")
        if not _is_address(self.oracle_address):
            raise ConfigurationError(f"price.oracle_address must be a 0x address: {self.oracle_address!r}")

    def pair(self) -> TokenPair:
        return TokenPair(base=str(self.token), quote=self.quote)


@dataclass
class ChallengeConfig:
    """respond=False only alerts; respond=True also sends a response transaction."""

    enabled: bool = True
    respond: bool = False

    def validate(self) -> None:
        return None


@dataclass
class SchedulerConfig:
    interval_s: float = 300.0
    sync_poll_s: float = 5.0
    run_on_start: bool = True

    def validate(self) -> None:
        if self.interval_s <= 0:
            raise ConfigurationError("scheduler.interval_s must be > 0")
        if self.sync_poll_s <= 0:
            raise ConfigurationError("scheduler.sync_poll_s must be > 0")


@dataclass
class MetricsConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9105

    def validate(self) -> None:
        if not (0 < self.port < 65536):
            raise ConfigurationError("metrics.port must be in 1..65535")


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"

    def validate(self) -> None:
        if self.level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ConfigurationError(f"logging.level is not a log level: {self.level!r}")
        if self.format not in {"json", "console"}:
            raise ConfigurationError("logging.format must be 'json' or 'console'")


@dataclass
class GovernanceConfig:
    """Snapshot hub used by the read-only proposals view."""

    snapshot_api: str = "https://hub.snapshot.org/graphql"
    space: str = "rocketpool-dao.eth"
    delegation_address: Optional[str] = None

    def validate(self) -> None:
        u = urlparse(self.snapshot_api)
        if u.scheme not in {"http", "https"}:
            raise ConfigurationError("governance.snapshot_api must be an http(s) URL")
        if self.delegation_address is not None and not _is_address(self.delegation_address):
            raise ConfigurationError("governance.delegation_address must be a 0x address")


# -------------------------
# Top-level config
# -------------------------


@dataclass
class WatchtowerConfig:
    """
    node_address: the node account (wallet-managed; referenced, never modified)
    chain_id: expected chain id, checked against the node on startup if set
    """

    node_address: Optional[str] = None
    chain_id: Optional[int] = None

    rpc: RpcConfig = field(default_factory=RpcConfig)
    price: PriceConfig = field(default_factory=PriceConfig)
    challenges: ChallengeConfig = field(default_factory=ChallengeConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)

    def validate(self) -> None:
        if not _is_address(self.node_address):
            raise ConfigurationError(f"node_address must be a 0x address: {self.node_address!r}")
        if self.chain_id is not None and self.chain_id <= 0:
            raise ConfigurationError("chain_id must be > 0")
        self.rpc.validate()
        self.price.validate()
        self.challenges.validate()
        self.scheduler.validate()
        self.metrics.validate()
        self.logging.validate()
        self.governance.validate()

    # -------------------------
    # Serialization helpers
    # -------------------------

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    # -------------------------
    # Loaders
    # -------------------------

    @staticmethod
    def from_env(prefix: str = "WATCHTOWER_", environ: Optional[Dict[str, str]] = None) -> "WatchtowerConfig":
        """
        Load configuration from environment variables. All keys are optional
        except the node address.

          - WATCHTOWER_NODE_ADDRESS=0x…
          - WATCHTOWER_CHAIN_ID=1
          - WATCHTOWER_RPC_URL=http://127.0.0.1:8545
          - WATCHTOWER_RPC_TIMEOUT_S=10
          - WATCHTOWER_RPC_MAX_RETRIES=2
          - WATCHTOWER_RPC_BACKOFF_S=0.2
          - WATCHTOWER_PRICE_ENABLED=true
          - WATCHTOWER_PRICE_TOKEN=0x…
          - WATCHTOWER_PRICE_QUOTE=0x000…
          - WATCHTOWER_PRICE_ORACLE=0x…
          - WATCHTOWER_CHALLENGES_ENABLED=true
          - WATCHTOWER_CHALLENGES_RESPOND=false
          - WATCHTOWER_INTERVAL_S=300
          - WATCHTOWER_SYNC_POLL_S=5
          - WATCHTOWER_RUN_ON_START=true
          - WATCHTOWER_METRICS_ENABLED=false
          - WATCHTOWER_METRICS_HOST=127.0.0.1
          - WATCHTOWER_METRICS_PORT=9105
          - WATCHTOWER_LOG_LEVEL=INFO
          - WATCHTOWER_LOG_FORMAT=json
          - WATCHTOWER_SNAPSHOT_API=https://hub.snapshot.org/graphql
          - WATCHTOWER_SNAPSHOT_SPACE=rocketpool-dao.eth
          - WATCHTOWER_DELEGATION_ADDRESS=0x…
        """
        env = os.environ if environ is None else environ

        def _get(name: str, cast: Any, default: Any) -> Any:
            key = prefix + name
            raw = env.get(key)
            if raw is None or raw == "":
                return default
            try:
                if cast is bool:
                    return raw.strip().lower() in {"1", "true", "yes", "on"}
                return cast(raw)
            except Exception as e:
                raise ConfigurationError(f"Invalid value for {key}: {raw!r}") from e

        d = WatchtowerConfig()
        cfg = WatchtowerConfig(
            node_address=_get("NODE_ADDRESS", str, None),
            chain_id=_get("CHAIN_ID", int, None),
            rpc=RpcConfig(
                url=_get("RPC_URL", str, d.rpc.url),
                timeout_s=_get("RPC_TIMEOUT_S", float, d.rpc.timeout_s),
                max_retries=_get("RPC_MAX_RETRIES", int, d.rpc.max_retries),
                backoff_s=_get("RPC_BACKOFF_S", float, d.rpc.backoff_s),
            ),
            price=PriceConfig(
                enabled=_get("PRICE_ENABLED", bool, d.price.enabled),
                token=_get("PRICE_TOKEN", str, None),
                quote=_get("PRICE_QUOTE", str, d.price.quote),
                oracle_address=_get("PRICE_ORACLE", str, None),
            ),
            challenges=ChallengeConfig(
                enabled=_get("CHALLENGES_ENABLED", bool, d.challenges.enabled),
                respond=_get("CHALLENGES_RESPOND", bool, d.challenges.respond),
            ),
            scheduler=SchedulerConfig(
                interval_s=_get("INTERVAL_S", float, d.scheduler.interval_s),
                sync_poll_s=_get("SYNC_POLL_S", float, d.scheduler.sync_poll_s),
                run_on_start=_get("RUN_ON_START", bool, d.scheduler.run_on_start),
            ),
            metrics=MetricsConfig(
                enabled=_get("METRICS_ENABLED", bool, d.metrics.enabled),
                host=_get("METRICS_HOST", str, d.metrics.host),
                port=_get("METRICS_PORT", int, d.metrics.port),
            ),
            logging=LoggingConfig(
                level=_get("LOG_LEVEL", str, d.logging.level),
                format=_get("LOG_FORMAT", str, d.logging.format),
            ),
            governance=GovernanceConfig(
                snapshot_api=_get("SNAPSHOT_API", str, d.governance.snapshot_api),
                space=_get("SNAPSHOT_SPACE", str, d.governance.space),
                delegation_address=_get("DELEGATION_ADDRESS", str, None),
            ),
        )
        cfg.validate()
        return cfg

    @staticmethod
    def from_file(path: str) -> "WatchtowerConfig":
        """
        Load configuration from a JSON or YAML file. Keys mirror the dataclass
        structure. Example (YAML):

            node_address: "0x1111111111111111111111111111111111111111"
            rpc:
              url: http://127.0.0.1:8545
            price:
              token: "0xd33526068d116ce69f19a9ee46f0bd304f21a51f"
              oracle_address: "0x07d91f5fb9bf7798734c3f606db065549f6893bb"
            scheduler:
              interval_s: 300
        """
        data = _parse_json_or_yaml(_read_text(path), path)
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path!r} must contain a mapping at the top level")
        return WatchtowerConfig.from_dict(data)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "WatchtowerConfig":
        data = dict(data)

        def _section(key: str, cls: Any) -> Any:
            raw = data.pop(key, None) or {}
            if not isinstance(raw, dict):
                raise ConfigurationError(f"section {key!r} must be a mapping")
            try:
                return cls(**raw)
            except TypeError as e:
                raise ConfigurationError(f"unknown key in section {key!r}: {e}") from e

        cfg = WatchtowerConfig(
            rpc=_section("rpc", RpcConfig),
            price=_section("price", PriceConfig),
            challenges=_section("challenges", ChallengeConfig),
            scheduler=_section("scheduler", SchedulerConfig),
            metrics=_section("metrics", MetricsConfig),
            logging=_section("logging", LoggingConfig),
            governance=_section("governance", GovernanceConfig),
        )
        cfg.node_address = data.pop("node_address", None)
        cfg.chain_id = data.pop("chain_id", None)
        if data:
            raise ConfigurationError(f"unknown top-level keys: {sorted(data)}")
        cfg.validate()
        return cfg


# -------------------------
# Utilities
# -------------------------


def _read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise ConfigurationError(f"cannot read config file {path!r}: {e}") from e


def _parse_json_or_yaml(text: str, path_hint: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    try:
        import yaml  # type: ignore

        return yaml.safe_load(text) or {}
    except Exception as e:
        raise ConfigurationError(
            f"Failed to parse {path_hint!r} as JSON or YAML. "
            f"Install PyYAML or provide valid JSON. Original error: {e}"
        ) from e


__all__ = [
    "RpcConfig",
    "PriceConfig",
    "ChallengeConfig",
    "SchedulerConfig",
    "MetricsConfig",
    "LoggingConfig",
    "GovernanceConfig",
    "WatchtowerConfig",
]
