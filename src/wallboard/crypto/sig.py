# src/wallboard/crypto/sig.py
from __future__ import annotations

import base64
import json
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from solders.pubkey import Pubkey

Json = Dict[str, Any]


def _decode_bytes(s: str) -> bytes:
    s = s.strip()
    if not s:
        raise ValueError("empty string")
    # hex
    try:
        return bytes.fromhex(s)
    except Exception:
        pass
    # base64 / base64url
    try:
        padding = "=" * (-len(s) % 4)
        s2 = (s + padding).replace("-", "+").replace("_", "/")
        return base64.b64decode(s2)
    except Exception as e:
        raise ValueError("not hex or base64") from e


def identity_bytes(identity: str) -> bytes:
    """Raw 32-byte public key for a base58 identity."""
    try:
        return bytes(Pubkey.from_string(identity.strip()))
    except Exception as e:
        raise ValueError(f"not a base58 identity: {identity!r}") from e


def identity_of(key: Ed25519PrivateKey) -> str:
    raw = key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return str(Pubkey.from_bytes(raw))


def canonical_tx_message(
    *,
    chain_id: str,
    tx_type: str,
    signer: str,
    nonce: int,
    payload: Json,
) -> bytes:
    obj: Json = {
        "chain_id": str(chain_id),
        "tx_type": str(tx_type),
        "signer": str(signer),
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
    }
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def verify_ed25519_signature(*, message: bytes, sig: str, identity: str) -> bool:
    try:
        sig_b = _decode_bytes(sig)
        key = Ed25519PublicKey.from_public_bytes(identity_bytes(identity))
        key.verify(sig_b, message)
        return True
    except (InvalidSignature, ValueError):
        return False


def sign_ed25519(*, message: bytes, privkey: Ed25519PrivateKey | str, encoding: str = "hex") -> str:
    """Sign a message with an Ed25519 private key.

    privkey: key object, or hex/base64 string of a 32-byte seed (64-byte keypairs use the first half).
    encoding: "hex" (default) or "b64".
    """
    if isinstance(privkey, Ed25519PrivateKey):
        key = privkey
    else:
        pk_b = _decode_bytes(privkey)
        if len(pk_b) == 64:
            pk_b = pk_b[:32]
        if len(pk_b) != 32:
            raise ValueError("ed25519 privkey must be 32-byte seed (or 64-byte keypair)")
        key = Ed25519PrivateKey.from_private_bytes(pk_b)

    sig_b = key.sign(message)
    if encoding == "hex":
        return sig_b.hex()
    if encoding in {"b64", "base64"}:
        return base64.b64encode(sig_b).decode("ascii")
    raise ValueError("unsupported encoding")
