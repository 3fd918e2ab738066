# src/wallboard/runtime/addressing.py
from __future__ import annotations

"""Deterministic wall addressing.

address, bump = find_program_address([b"wall", owner(32), wall_id_le(8)], program_id)

The search walks bump from 255 downwards and returns the first candidate that
is NOT a valid ed25519 point, so no identity can hold its signing key. Later
checks rebuild the address from stored inputs plus the recorded bump in O(1).
"""

import struct
from typing import List, Tuple

from solders.pubkey import Pubkey

from wallboard.ledger.constants import WALL_SEED
from wallboard.runtime.errors import ApplyError, address_mismatch

U64_MAX = (1 << 64) - 1


def parse_identity(value: str | bytes | Pubkey, *, field: str = "identity") -> Pubkey:
    """Accept base58 text, 32 raw bytes or a Pubkey."""
    if isinstance(value, Pubkey):
        return value
    try:
        if isinstance(value, (bytes, bytearray)):
            if len(value) != 32:
                raise ValueError("identity must be 32 bytes")
            return Pubkey.from_bytes(bytes(value))
        s = str(value or "").strip()
        if not s:
            raise ValueError("empty identity")
        return Pubkey.from_string(s)
    except Exception as e:
        raise ApplyError("invalid_input", "bad_identity", {"field": field, "value": str(value), "error": str(e)}) from e


def wall_id_bytes(wall_id: int) -> bytes:
    wid = int(wall_id)
    if wid < 0 or wid > U64_MAX:
        raise ApplyError("invalid_input", "wall_id_out_of_range", {"wall_id": wid})
    return struct.pack("<Q", wid)


def wall_seeds(owner: str | bytes | Pubkey, wall_id: int) -> List[bytes]:
    return [WALL_SEED, bytes(parse_identity(owner, field="owner")), wall_id_bytes(wall_id)]


def derive_wall_address(owner: str | bytes | Pubkey, wall_id: int, program_id: str | Pubkey) -> Tuple[str, int]:
    """Return (base58 address, bump_nonce) for (owner, wall_id)."""
    pid = parse_identity(program_id, field="program_id")
    addr, bump = Pubkey.find_program_address(wall_seeds(owner, wall_id), pid)
    return str(addr), int(bump)


def wall_address_with_bump(
    owner: str | bytes | Pubkey,
    wall_id: int,
    bump: int,
    program_id: str | Pubkey,
) -> str:
    """Recompute the address from stored inputs and the recorded bump (no search)."""
    b = int(bump)
    if b < 0 or b > 255:
        raise address_mismatch({"reason": "bump_out_of_range", "bump": b})
    pid = parse_identity(program_id, field="program_id")
    seeds = wall_seeds(owner, wall_id) + [bytes([b])]
    try:
        return str(Pubkey.create_program_address(seeds, pid))
    except Exception as e:
        # Seeds + bump landed on the curve: cannot be a program-held address.
        raise address_mismatch({"reason": "invalid_seeds", "bump": b, "error": str(e)}) from e


def is_program_held(address: str | Pubkey) -> bool:
    """True when no ed25519 signing key can exist for this address."""
    return not parse_identity(address, field="address").is_on_curve()


__all__ = [
    "U64_MAX",
    "derive_wall_address",
    "is_program_held",
    "parse_identity",
    "wall_address_with_bump",
    "wall_id_bytes",
    "wall_seeds",
]
