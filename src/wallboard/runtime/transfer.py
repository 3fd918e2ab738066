# src/wallboard/runtime/transfer.py
from __future__ import annotations

from typing import Any, Dict, Set

from wallboard.ledger.state import _as_int, ensure_account, get_account
from wallboard.runtime.errors import ApplyError, not_signer, transfer_failed

Json = Dict[str, Any]


def transfer(state: Json, frm: str, to: str, amount: int, *, signers: Set[str]) -> Json:
    """Native value transfer between two accounts of the working state.

    Runs against the dispatcher's working copy, so it commits or rolls back
    together with the rest of the instruction.
    """
    frm = str(frm).strip()
    to = str(to).strip()
    amt = _as_int(amount, -1)

    if amt < 0:
        raise ApplyError("invalid_payload", "bad_amount", {"amount": amount})
    if frm not in signers:
        raise not_signer(frm)

    fa = get_account(state, frm)
    if fa is None:
        raise transfer_failed({"reason": "from_account_missing", "from": frm, "amount": amt})

    fb = _as_int(fa.get("lamports"), 0)
    if fb < amt:
        raise transfer_failed({"reason": "insufficient_lamports", "from": frm, "balance": fb, "amount": amt})

    ta = ensure_account(state, to)
    if frm == to:
        return {"from": frm, "to": to, "amount": amt}

    fa["lamports"] = fb - amt
    ta["lamports"] = _as_int(ta.get("lamports"), 0) + amt
    return {"from": frm, "to": to, "amount": amt}
