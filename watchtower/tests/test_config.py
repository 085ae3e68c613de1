import json

import pytest

from watchtower.config import NATIVE_TOKEN, WatchtowerConfig
from watchtower.errors import ConfigurationError
from watchtower.types import TokenPair

from watchtower.tests.conftest import NODE, ORACLE, TOKEN


def _env(**extra):
    env = {
        "WATCHTOWER_NODE_ADDRESS": NODE,
        "WATCHTOWER_PRICE_TOKEN": TOKEN,
        "WATCHTOWER_PRICE_ORACLE": ORACLE,
    }
    env.update(extra)
    return env


def test_from_env_defaults():
    cfg = WatchtowerConfig.from_env(environ=_env())
    assert cfg.node_address == NODE
    assert cfg.rpc.url == "http://127.0.0.1:8545"
    assert cfg.scheduler.interval_s == 300.0
    assert cfg.challenges.respond is False
    assert cfg.price.pair() == TokenPair(base=TOKEN, quote=NATIVE_TOKEN)


def test_from_env_overrides():
    cfg = WatchtowerConfig.from_env(
        environ=_env(
            WATCHTOWER_RPC_URL="https://node.example:8545",
            WATCHTOWER_RPC_MAX_RETRIES="5",
            WATCHTOWER_CHALLENGES_RESPOND="yes",
            WATCHTOWER_INTERVAL_S="60",
            WATCHTOWER_METRICS_ENABLED="1",
            WATCHTOWER_LOG_FORMAT="console",
        )
    )
    assert cfg.rpc.url == "https://node.example:8545"
    assert cfg.rpc.max_retries == 5
    assert cfg.challenges.respond is True
    assert cfg.scheduler.interval_s == 60.0
    assert cfg.metrics.enabled is True
    assert cfg.logging.format == "console"


def test_missing_node_address_rejected():
    with pytest.raises(ConfigurationError):
        WatchtowerConfig.from_env(environ={"WATCHTOWER_PRICE_ENABLED": "false"})


def test_price_duty_requires_token_and_oracle():
    with pytest.raises(ConfigurationError, match="price.oracle_address"):
        WatchtowerConfig.from_env(environ={"WATCHTOWER_NODE_ADDRESS": NODE, "WATCHTOWER_PRICE_TOKEN": TOKEN})


def test_disabled_price_duty_needs_no_token():
    cfg = WatchtowerConfig.from_env(environ={"WATCHTOWER_NODE_ADDRESS": NODE, "WATCHTOWER_PRICE_ENABLED": "off"})
    assert cfg.price.enabled is False


@pytest.mark.parametrize(
    "key,value",
    [
        ("WATCHTOWER_RPC_URL", "ftp://node"),
        ("WATCHTOWER_RPC_TIMEOUT_S", "0"),
        ("WATCHTOWER_INTERVAL_S", "-1"),
        ("WATCHTOWER_METRICS_PORT", "70000"),
        ("WATCHTOWER_LOG_LEVEL", "LOUD"),
        ("WATCHTOWER_CHAIN_ID", "not-a-number"),
    ],
)
def test_invalid_env_values(key, value):
    with pytest.raises(ConfigurationError):
        WatchtowerConfig.from_env(environ=_env(**{key: value}))


def test_from_json_file(tmp_path):
    path = tmp_path / "watchtower.json"
    path.write_text(
        json.dumps(
            {
                "node_address": NODE,
                "price": {"token": TOKEN, "oracle_address": ORACLE},
                "challenges": {"respond": True},
                "scheduler": {"interval_s": 30},
            }
        )
    )
    cfg = WatchtowerConfig.from_file(str(path))
    assert cfg.challenges.respond is True
    assert cfg.scheduler.interval_s == 30


def test_from_yaml_file(tmp_path):
    path = tmp_path / "watchtower.yaml"
    path.write_text(
        "node_address: '%s'\n"
        "price:\n"
        "  token: '%s'\n"
        "  oracle_address: '%s'\n"
        "rpc:\n"
        "  url: http://10.0.0.2:8545\n" % (NODE, TOKEN, ORACLE)
    )
    cfg = WatchtowerConfig.from_file(str(path))
    assert cfg.rpc.url == "http://10.0.0.2:8545"


def test_unknown_keys_rejected():
    with pytest.raises(ConfigurationError, match="unknown top-level"):
        WatchtowerConfig.from_dict({"node_address": NODE, "price": {"enabled": False}, "surprise": 1})
    with pytest.raises(ConfigurationError, match="section 'rpc'"):
        WatchtowerConfig.from_dict({"node_address": NODE, "price": {"enabled": False}, "rpc": {"uri": "x"}})


def test_missing_file_is_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        WatchtowerConfig.from_file(str(tmp_path / "absent.yaml"))


def test_to_json_round_trips_through_from_dict():
    cfg = WatchtowerConfig.from_env(environ=_env())
    again = WatchtowerConfig.from_dict(json.loads(cfg.to_json()))
    assert again == cfg
