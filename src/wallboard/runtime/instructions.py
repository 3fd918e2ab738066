# src/wallboard/runtime/instructions.py
from __future__ import annotations

"""Instruction surface.

Two opcodes, each an 8-byte discriminator followed by positional arguments:

  initialize_wall(wall_id: u64)
    accounts: wall_record (writable), owner (signer, writable), system_program

  post_message(message: string)
    accounts: wall_record (writable), poster (signer, writable),
              owner_dev_wallet (writable), system_program
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from wallboard.ledger.constants import DEFAULT_PROGRAM_ID, SYSTEM_PROGRAM_ID
from wallboard.runtime.addressing import derive_wall_address
from wallboard.runtime.codec import CodecError, Reader, Writer, discriminator
from wallboard.runtime.errors import bad_instruction, unknown_instruction

Json = Dict[str, Any]

INITIALIZE_WALL = "initialize_wall"
POST_MESSAGE = "post_message"

IX_DISCRIMINATORS: Dict[str, bytes] = {
    INITIALIZE_WALL: discriminator("global", INITIALIZE_WALL),
    POST_MESSAGE: discriminator("global", POST_MESSAGE),
}
_BY_DISC: Dict[bytes, str] = {v: k for k, v in IX_DISCRIMINATORS.items()}

# Envelope tx_type for each opcode.
TX_TYPES: Dict[str, str] = {
    INITIALIZE_WALL: "INITIALIZE_WALL",
    POST_MESSAGE: "POST_MESSAGE",
}


@dataclass(frozen=True)
class AccountMeta:
    pubkey: str
    is_signer: bool = False
    is_writable: bool = False

    @staticmethod
    def from_json(j: Any) -> "AccountMeta":
        if isinstance(j, AccountMeta):
            return j
        if isinstance(j, str):
            return AccountMeta(pubkey=j)
        if not isinstance(j, dict):
            raise bad_instruction("bad_account_meta", {"value": str(j)})
        return AccountMeta(
            pubkey=str(j.get("pubkey") or "").strip(),
            is_signer=bool(j.get("is_signer", False)),
            is_writable=bool(j.get("is_writable", False)),
        )

    def to_json(self) -> Json:
        return {"pubkey": self.pubkey, "is_signer": self.is_signer, "is_writable": self.is_writable}


@dataclass(frozen=True)
class Instruction:
    name: str
    args: Json
    accounts: List[AccountMeta] = field(default_factory=list)

    @property
    def tx_type(self) -> str:
        return TX_TYPES[self.name]

    @property
    def data(self) -> bytes:
        return encode_instruction_data(self.name, self.args)

    def to_payload(self) -> Json:
        """Envelope payload form: base64 instruction data + ordered account metas."""
        return {
            "data": base64.b64encode(self.data).decode("ascii"),
            "accounts": [a.to_json() for a in self.accounts],
        }


def encode_instruction_data(name: str, args: Json) -> bytes:
    disc = IX_DISCRIMINATORS.get(name)
    if disc is None:
        raise unknown_instruction(name)
    w = Writer().raw(disc)
    try:
        if name == INITIALIZE_WALL:
            w.u64(int(args["wall_id"]))
        else:
            w.string(args["message"])
    except (KeyError, UnicodeEncodeError, CodecError) as e:
        raise bad_instruction("bad_instruction_args", {"name": name, "error": str(e)}) from e
    return w.to_bytes()


def decode_instruction_data(data: bytes) -> Tuple[str, Json]:
    if len(data) < 8:
        raise bad_instruction("InstructionMissing", {"len": len(data)})
    name = _BY_DISC.get(bytes(data[:8]))
    if name is None:
        raise unknown_instruction(bytes(data[:8]).hex())

    r = Reader(data[8:])
    try:
        if name == INITIALIZE_WALL:
            args: Json = {"wall_id": r.u64()}
        else:
            args = {"message": r.string()}
        r.expect_end()
    except CodecError as e:
        raise bad_instruction("InstructionDidNotDeserialize", {"name": name, "error": e.code}) from e
    return name, args


def decode_payload(payload: Json) -> Instruction:
    """Decode an envelope payload {data: b64, accounts: [...]}."""
    raw = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(raw, str):
        raise bad_instruction("missing_instruction_data", {})
    try:
        data = base64.b64decode(raw, validate=True)
    except Exception as e:
        raise bad_instruction("bad_instruction_encoding", {"error": str(e)}) from e

    name, args = decode_instruction_data(data)
    metas = payload.get("accounts")
    if not isinstance(metas, list):
        metas = []
    return Instruction(name=name, args=args, accounts=[AccountMeta.from_json(m) for m in metas])


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def initialize_wall_ix(owner: str, wall_id: int, *, program_id: str = DEFAULT_PROGRAM_ID) -> Instruction:
    addr, _bump = derive_wall_address(owner, wall_id, program_id)
    return Instruction(
        name=INITIALIZE_WALL,
        args={"wall_id": int(wall_id)},
        accounts=[
            AccountMeta(addr, is_signer=False, is_writable=True),
            AccountMeta(str(owner), is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
    )


def post_message_ix(
    poster: str,
    owner: str,
    wall_id: int,
    message: str,
    *,
    program_id: str = DEFAULT_PROGRAM_ID,
    dev_wallet: str | None = None,
) -> Instruction:
    """Build a post. `dev_wallet` overrides the fee recipient account (defaults to owner)."""
    addr, _bump = derive_wall_address(owner, wall_id, program_id)
    return Instruction(
        name=POST_MESSAGE,
        args={"message": message},
        accounts=[
            AccountMeta(addr, is_signer=False, is_writable=True),
            AccountMeta(str(poster), is_signer=True, is_writable=True),
            AccountMeta(str(dev_wallet or owner), is_signer=False, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
    )
