# src/wallboard/runtime/wall_registry.py
from __future__ import annotations

"""Wall registry: one-shot creation and verified reads of Wall records.

Record layout (after the 8-byte account discriminator):
  0..32   owner_identity (pubkey)
  32..40  wall_id        (u64 LE)
  40..41  bump_nonce     (u8)

A record is only ever written by `initialize`; nothing mutates it afterwards.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Set

from wallboard.ledger.constants import SYSTEM_OWNER, WALL_ACCOUNT_SPACE, WALL_RENT_LAMPORTS
from wallboard.ledger.state import account_data, ensure_account, get_account
from wallboard.runtime.addressing import derive_wall_address, wall_address_with_bump
from wallboard.runtime.codec import CodecError, Reader, Writer, discriminator
from wallboard.runtime.errors import (
    address_mismatch,
    already_initialized,
    not_found,
    not_signer,
)
from wallboard.runtime.transfer import transfer

Json = Dict[str, Any]

WALL_DISCRIMINATOR = discriminator("account", "Wall")


@dataclass(frozen=True)
class WallRecord:
    owner_identity: str
    wall_id: int
    bump_nonce: int

    def encode(self) -> bytes:
        return (
            Writer()
            .raw(WALL_DISCRIMINATOR)
            .pubkey(self.owner_identity)
            .u64(self.wall_id)
            .u8(self.bump_nonce)
            .to_bytes()
        )

    @staticmethod
    def decode(data: bytes) -> "WallRecord":
        if len(data) != WALL_ACCOUNT_SPACE:
            raise CodecError("bad_length", f"wall record must be {WALL_ACCOUNT_SPACE} bytes, got {len(data)}")
        r = Reader(data)
        if r.take(8) != WALL_DISCRIMINATOR:
            raise CodecError("bad_discriminator", "not a Wall record")
        rec = WallRecord(owner_identity=r.pubkey(), wall_id=r.u64(), bump_nonce=r.u8())
        r.expect_end()
        return rec

    def to_json(self) -> Json:
        return {"owner_identity": self.owner_identity, "wall_id": self.wall_id, "bump_nonce": self.bump_nonce}


def _is_allocated(acct: Json | None) -> bool:
    if acct is None:
        return False
    return bool(account_data(acct)) or str(acct.get("owner") or SYSTEM_OWNER) != SYSTEM_OWNER


def initialize(
    state: Json,
    *,
    owner: str,
    wall_id: int,
    address: str,
    signers: Set[str],
    program_id: str,
) -> WallRecord:
    """Create the Wall record at `address`; the owner funds its storage."""
    if owner not in signers:
        raise not_signer(owner)

    expected, bump = derive_wall_address(owner, wall_id, program_id)
    if address != expected:
        raise address_mismatch({"supplied": address, "expected": expected})

    if _is_allocated(get_account(state, address)):
        raise already_initialized(address)

    # Storage reservation moves from the owner to the record account.
    transfer(state, owner, address, WALL_RENT_LAMPORTS, signers=signers)

    rec = WallRecord(owner_identity=owner, wall_id=int(wall_id), bump_nonce=int(bump))
    acct = ensure_account(state, address)
    acct["owner"] = str(program_id)
    acct["data"] = rec.encode().hex()
    return rec


def load_at(state: Json, address: str, *, program_id: str) -> WallRecord:
    """Read and verify the record stored at `address`."""
    acct = get_account(state, address)
    if acct is None or not account_data(acct):
        raise not_found(address)
    if str(acct.get("owner") or "") != str(program_id):
        raise not_found(address)

    try:
        rec = WallRecord.decode(account_data(acct))
    except CodecError as e:
        raise not_found(address) from e

    recomputed = wall_address_with_bump(rec.owner_identity, rec.wall_id, rec.bump_nonce, program_id)
    if recomputed != address:
        raise address_mismatch({"address": address, "recomputed": recomputed})
    return rec


def load(state: Json, owner_hint: str, wall_id: int, *, program_id: str) -> WallRecord:
    """Read the record for (owner_hint, wall_id) and bind it to that owner."""
    address, _bump = derive_wall_address(owner_hint, wall_id, program_id)
    rec = load_at(state, address, program_id=program_id)
    if rec.owner_identity != owner_hint or rec.wall_id != int(wall_id):
        raise address_mismatch({"address": address, "owner_hint": owner_hint, "stored_owner": rec.owner_identity})
    return rec


def iter_walls(state: Json, *, program_id: str) -> Iterator[tuple[str, WallRecord]]:
    accounts = state.get("accounts")
    if not isinstance(accounts, dict):
        return
    for addr in sorted(accounts.keys()):
        acct = accounts[addr]
        if not isinstance(acct, dict) or str(acct.get("owner") or "") != str(program_id):
            continue
        try:
            yield addr, WallRecord.decode(account_data(acct))
        except CodecError:
            continue
