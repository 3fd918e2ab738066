# src/wallboard/runtime/tx_admission.py
from __future__ import annotations

import json
import os
from typing import Any, Dict

from wallboard.crypto.sig import canonical_tx_message, verify_ed25519_signature
from wallboard.ledger.state import LedgerView
from wallboard.runtime.addressing import parse_identity
from wallboard.runtime.errors import ApplyError
from wallboard.runtime.instructions import TX_TYPES, decode_payload
from wallboard.runtime.tx_admission_types import TxEnvelope, TxVerdict

Json = Dict[str, Any]

SUPPORTED_TX_TYPES = frozenset(TX_TYPES.values())


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None:
        return int(default)
    try:
        return int(str(v).strip())
    except Exception:
        return int(default)


def _json_size_bytes(obj: Any) -> int:
    """Compute JSON byte size. If not serializable, return -1 (unknown)."""
    try:
        return len(json.dumps(obj, separators=(",", ":"), ensure_ascii=False, sort_keys=True).encode("utf-8"))
    except Exception:
        return -1


def admit_tx(
    tx: Any,
    ledger: LedgerView,
    *,
    chain_id: str,
    verify_sig: bool = True,
) -> TxVerdict:
    """Stateless + nonce checks before an envelope reaches the dispatcher.

    Signature verification establishes the signer set the dispatcher sees.
    """
    raw = tx.to_json() if isinstance(tx, TxEnvelope) else tx
    if not isinstance(raw, dict):
        return TxVerdict.reject("bad_shape", "envelope_must_be_object", None)

    max_tx_bytes = _env_int("WALLBOARD_MAX_TX_ENVELOPE_BYTES", 16 * 1024)
    env_size = _json_size_bytes(raw)
    if env_size < 0:
        return TxVerdict.reject("bad_shape", "envelope_not_json", None)
    if env_size > int(max_tx_bytes):
        return TxVerdict.reject(
            "tx_too_large",
            "tx_envelope_exceeds_size_limit",
            {"bytes": int(env_size), "max_bytes": int(max_tx_bytes)},
        )

    try:
        env = TxEnvelope.from_json(raw)
    except (TypeError, ValueError) as e:
        return TxVerdict.reject("bad_shape", "bad_envelope", {"error": str(e)})

    if not env.tx_type:
        return TxVerdict.reject("bad_shape", "missing_tx_type", None)
    if env.tx_type not in SUPPORTED_TX_TYPES:
        return TxVerdict.reject("unknown_tx", "tx_type_not_supported", {"tx_type": env.tx_type})
    if not env.signer:
        return TxVerdict.reject("bad_shape", "missing_signer", None)

    try:
        parse_identity(env.signer, field="signer")
        ix = decode_payload(env.payload)
    except ApplyError as e:
        return TxVerdict.reject(e.code, e.reason, {"error_code": e.error_code, **(e.details or {})})

    if ix.tx_type != env.tx_type:
        return TxVerdict.reject(
            "invalid_payload",
            "tx_type_instruction_mismatch",
            {"tx_type": env.tx_type, "instruction": ix.name},
        )

    if not ledger.exists(env.signer):
        return TxVerdict.reject("not_found", "AccountNotFound", {"signer": env.signer})

    expected = ledger.get_nonce(env.signer) + 1
    if int(env.nonce) != expected:
        return TxVerdict.reject("bad_nonce", "nonce_mismatch", {"expected": expected, "got": int(env.nonce)})

    if verify_sig:
        if not env.sig.strip():
            return TxVerdict.reject("unauthorized", "missing_signature", {"signer": env.signer})
        msg = canonical_tx_message(
            chain_id=chain_id,
            tx_type=env.tx_type,
            signer=env.signer,
            nonce=env.nonce,
            payload=env.payload,
        )
        if not verify_ed25519_signature(message=msg, sig=env.sig, identity=env.signer):
            return TxVerdict.reject("unauthorized", "invalid_signature", {"signer": env.signer})

    return TxVerdict.admit()
