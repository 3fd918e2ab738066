# src/wallboard/ledger/state.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from wallboard.ledger.constants import SYSTEM_OWNER

Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def new_account(*, lamports: int = 0, owner: str = SYSTEM_OWNER, data: bytes = b"") -> Json:
    return {"lamports": int(lamports), "nonce": 0, "owner": str(owner), "data": bytes(data).hex()}


def ensure_state(state: Json) -> Json:
    """Normalize the top-level shape in place."""
    if not isinstance(state.get("accounts"), dict):
        state["accounts"] = {}
    state.setdefault("height", 0)
    return state


def get_account(state: Json, account_id: str) -> Optional[Json]:
    acct = ensure_state(state)["accounts"].get(str(account_id))
    return acct if isinstance(acct, dict) else None


def ensure_account(state: Json, account_id: str) -> Json:
    accounts = ensure_state(state)["accounts"]
    acct = accounts.get(str(account_id))
    if not isinstance(acct, dict):
        acct = new_account()
        accounts[str(account_id)] = acct
    return acct


def balance_of(state: Json, account_id: str) -> int:
    acct = get_account(state, account_id)
    return _as_int(acct.get("lamports"), 0) if acct is not None else 0


def account_data(acct: Json) -> bytes:
    raw = acct.get("data") or ""
    try:
        return bytes.fromhex(str(raw))
    except ValueError:
        return b""


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Immutable read-only ledger view used by API routes and tests.
    """

    accounts: Dict[str, Any] = field(default_factory=dict)
    program_id: str = ""
    height: int = 0

    @classmethod
    def from_ledger(cls, state: Dict[str, Any]) -> "LedgerView":
        return cls(
            accounts=copy.deepcopy(state.get("accounts", {})) if isinstance(state.get("accounts"), dict) else {},
            program_id=str(state.get("program_id") or ""),
            height=_as_int(state.get("height"), 0),
        )

    def get_account(self, account_id: str) -> Dict[str, Any]:
        acct = self.accounts.get(account_id)
        return acct if isinstance(acct, dict) else {}

    def get_nonce(self, account_id: str) -> int:
        return _as_int(self.get_account(account_id).get("nonce"), 0)

    def exists(self, account_id: str) -> bool:
        return bool(self.get_account(account_id))
