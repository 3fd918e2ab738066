from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from wallboard.runtime.chain_config import (
    default_chain_config,
    load_chain_config,
    read_chain_config_file,
    validate_chain_config,
)

_ENV_KEYS = (
    "WALLBOARD_CHAIN_CONFIG_PATH",
    "WALLBOARD_CHAIN_ID",
    "WALLBOARD_MODE",
    "WALLBOARD_DB_PATH",
    "WALLBOARD_PROGRAM_ID",
    "WALLBOARD_API_PORT",
    "WALLBOARD_ALLOW_AIRDROP",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for k in _ENV_KEYS:
        monkeypatch.delenv(k, raising=False)


def test_defaults_are_prod_and_valid() -> None:
    cfg = load_chain_config()
    assert cfg == default_chain_config()
    assert cfg.mode == "prod"
    assert cfg.allow_airdrop is False


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WALLBOARD_CHAIN_ID", "wall-dev-1")
    monkeypatch.setenv("WALLBOARD_MODE", "DEV")
    monkeypatch.setenv("WALLBOARD_API_PORT", "9001")
    monkeypatch.setenv("WALLBOARD_ALLOW_AIRDROP", "yes")

    cfg = load_chain_config()
    assert cfg.chain_id == "wall-dev-1"
    assert cfg.mode == "dev"
    assert cfg.api_port == 9001
    assert cfg.allow_airdrop is True


def test_config_file_wins(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / "chain.json"
    p.write_text(json.dumps({"chain_id": "from-file", "mode": "testnet", "db_path": "/tmp/x.db"}), encoding="utf-8")
    monkeypatch.setenv("WALLBOARD_CHAIN_CONFIG_PATH", str(p))
    monkeypatch.setenv("WALLBOARD_CHAIN_ID", "from-env")

    cfg = load_chain_config()
    assert cfg.chain_id == "from-file"
    assert cfg.mode == "testnet"
    assert cfg.db_path == "/tmp/x.db"


def test_config_file_must_be_object(tmp_path: Path) -> None:
    p = tmp_path / "chain.json"
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        read_chain_config_file(str(p))


@pytest.mark.parametrize(
    "changes",
    [
        {"mode": "staging"},
        {"api_port": 0},
        {"api_port": 70000},
        {"db_path": "  "},
        {"chain_id": ""},
        {"program_id": "not-base58!"},
        {"mode": "prod", "allow_airdrop": True},
    ],
)
def test_validation_rejects(changes) -> None:
    with pytest.raises(ValueError):
        validate_chain_config(replace(default_chain_config(), **changes))


def test_airdrop_allowed_outside_prod() -> None:
    validate_chain_config(replace(default_chain_config(), mode="dev", allow_airdrop=True))
