# src/wallboard/runtime/chain_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from solders.pubkey import Pubkey

from wallboard.ledger.constants import DEFAULT_PROGRAM_ID

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class ChainConfig:
    chain_id: str
    node_id: str
    mode: str  # "dev" | "testnet" | "prod"

    db_path: str
    program_id: str

    api_host: str
    api_port: int

    # Dev/test faucet; never honored in prod.
    allow_airdrop: bool

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_chain_config(cfg: ChainConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.chain_id, str) or not cfg.chain_id.strip():
        raise ValueError("chain_id must be a non-empty string")

    if not isinstance(cfg.node_id, str) or not cfg.node_id.strip():
        raise ValueError("node_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    try:
        Pubkey.from_string(str(cfg.program_id).strip())
    except Exception as e:
        raise ValueError(f"program_id must be a base58 32-byte key; got: {cfg.program_id!r}") from e

    if mode == "prod" and cfg.allow_airdrop:
        raise ValueError("allow_airdrop is not permitted in prod mode")


def default_chain_config() -> ChainConfig:
    return ChainConfig(
        chain_id="wallboard-dev",
        node_id="local-node",
        # No config file means production posture.
        mode="prod",
        db_path="./data/wallboard.db",
        program_id=DEFAULT_PROGRAM_ID,
        api_host="127.0.0.1",
        api_port=8000,
        allow_airdrop=False,
        log_level="INFO",
    )


def _env_overrides(d: ChainConfig) -> ChainConfig:
    env = os.environ
    return ChainConfig(
        chain_id=_as_str(env.get("WALLBOARD_CHAIN_ID"), d.chain_id),
        node_id=_as_str(env.get("WALLBOARD_NODE_ID"), d.node_id),
        mode=_as_str(env.get("WALLBOARD_MODE"), d.mode).strip().lower(),
        db_path=_as_str(env.get("WALLBOARD_DB_PATH"), d.db_path),
        program_id=_as_str(env.get("WALLBOARD_PROGRAM_ID"), d.program_id),
        api_host=_as_str(env.get("WALLBOARD_API_HOST"), d.api_host),
        api_port=_as_int(env.get("WALLBOARD_API_PORT"), d.api_port),
        allow_airdrop=_as_bool(env.get("WALLBOARD_ALLOW_AIRDROP"), d.allow_airdrop),
        log_level=_as_str(env.get("WALLBOARD_LOG_LEVEL"), d.log_level),
    )


def read_chain_config_file(path: str) -> ChainConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("chain config must be a JSON object")

    d = default_chain_config()

    cfg = ChainConfig(
        chain_id=_as_str(raw.get("chain_id"), d.chain_id),
        node_id=_as_str(raw.get("node_id"), d.node_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        program_id=_as_str(raw.get("program_id"), d.program_id),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        allow_airdrop=_as_bool(raw.get("allow_airdrop"), d.allow_airdrop),
        log_level=_as_str(raw.get("log_level"), d.log_level),
    )

    validate_chain_config(cfg)
    return cfg


def load_chain_config(*, config_path: Optional[str] = None) -> ChainConfig:
    """Config file (explicit path or WALLBOARD_CHAIN_CONFIG_PATH), else defaults + WALLBOARD_* env."""
    p = config_path or os.environ.get("WALLBOARD_CHAIN_CONFIG_PATH")
    if p:
        return read_chain_config_file(p)

    cfg = _env_overrides(default_chain_config())
    validate_chain_config(cfg)
    return cfg
