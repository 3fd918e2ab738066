# src/wallboard/runtime/dispatch.py
from __future__ import annotations

"""Instruction dispatcher.

Composes validator -> registry -> transfer -> emitter into the two top-level
operations. Every instruction runs against a deep copy of the state; the copy
is only handed back when every step (emission included) succeeded, so a
failure anywhere leaves the caller's state untouched.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from wallboard.ledger.constants import MESSAGE_FEE, SYSTEM_PROGRAM_ID
from wallboard.ledger.state import balance_of, ensure_state
from wallboard.runtime import validator, wall_registry
from wallboard.runtime.clock import Clock
from wallboard.runtime.errors import ApplyError, RuntimeErrorCode, not_signer, unknown_instruction
from wallboard.runtime.events import Emitter, EventRecord, EventSink, MessagePosted, WallInitialized
from wallboard.runtime.instructions import INITIALIZE_WALL, POST_MESSAGE, AccountMeta, Instruction
from wallboard.runtime.transfer import transfer

Json = Dict[str, Any]


@dataclass(frozen=True)
class DispatchContext:
    program_id: str
    signers: FrozenSet[str]
    clock: Clock


@dataclass
class DispatchResult:
    state: Json
    meta: Json
    events: List[EventRecord] = field(default_factory=list)


class _RecordingSink:
    """Forwards to the caller's sink (if any) and keeps what was emitted."""

    def __init__(self, downstream: Optional[EventSink]) -> None:
        self._downstream = downstream
        self.records: List[EventRecord] = []

    def append(self, record: EventRecord) -> None:
        if self._downstream is not None:
            self._downstream.append(record)
        self.records.append(record)


# ---------------------------------------------------------------------------
# Account checks
# ---------------------------------------------------------------------------

def _require_accounts(ix: Instruction, n: int) -> List[AccountMeta]:
    if len(ix.accounts) < n:
        raise ApplyError(
            "invalid_tx",
            "AccountNotEnoughKeys",
            {"name": ix.name, "want": n, "got": len(ix.accounts)},
            int(RuntimeErrorCode.ACCOUNT_NOT_ENOUGH_KEYS),
        )
    return list(ix.accounts[:n])


def _require_writable(meta: AccountMeta, role: str) -> None:
    if not meta.is_writable:
        raise ApplyError(
            "invalid_tx",
            "AccountNotMutable",
            {"account": meta.pubkey, "role": role},
            int(RuntimeErrorCode.ACCOUNT_NOT_MUTABLE),
        )


def _require_system_program(meta: AccountMeta) -> None:
    if meta.pubkey != SYSTEM_PROGRAM_ID:
        raise ApplyError(
            "invalid_tx",
            "InvalidProgramId",
            {"supplied": meta.pubkey, "expected": SYSTEM_PROGRAM_ID},
            int(RuntimeErrorCode.INVALID_PROGRAM_ID),
        )


def _require_signed(meta: AccountMeta, ctx: DispatchContext) -> None:
    if not meta.is_signer or meta.pubkey not in ctx.signers:
        raise not_signer(meta.pubkey)


# ---------------------------------------------------------------------------
# InitializeWall
# ---------------------------------------------------------------------------

def _initialize_wall(state: Json, ix: Instruction, ctx: DispatchContext, emitter: Emitter) -> Json:
    wall_meta, owner_meta, program_meta = _require_accounts(ix, 3)
    _require_system_program(program_meta)
    _require_writable(wall_meta, "wall")
    _require_writable(owner_meta, "owner")
    _require_signed(owner_meta, ctx)

    owner = owner_meta.pubkey
    wall_id = int(ix.args["wall_id"])

    rec = wall_registry.initialize(
        state,
        owner=owner,
        wall_id=wall_id,
        address=wall_meta.pubkey,
        signers=set(ctx.signers),
        program_id=ctx.program_id,
    )

    emitter.emit(WallInitialized(wall_id=rec.wall_id, dev_wallet=owner))
    return {"applied": "INITIALIZE_WALL", "address": wall_meta.pubkey, "wall": rec.to_json()}


# ---------------------------------------------------------------------------
# PostMessage
# ---------------------------------------------------------------------------

def _post_message(state: Json, ix: Instruction, ctx: DispatchContext, emitter: Emitter) -> Json:
    message = str(ix.args.get("message", ""))
    validator.check_message_length(message)

    wall_meta, poster_meta, dev_meta, program_meta = _require_accounts(ix, 4)
    _require_system_program(program_meta)
    _require_writable(wall_meta, "wall")
    _require_writable(poster_meta, "poster")
    _require_writable(dev_meta, "dev_wallet")

    wall = wall_registry.load_at(state, wall_meta.pubkey, program_id=ctx.program_id)
    validator.check_dev_wallet(dev_meta.pubkey, wall.owner_identity)

    poster = poster_meta.pubkey
    validator.check_funds(balance_of(state, poster))
    if not poster_meta.is_signer:
        raise not_signer(poster)
    validator.check_signer(poster, set(ctx.signers))

    transfer(state, poster, wall.owner_identity, MESSAGE_FEE, signers=set(ctx.signers))

    ts = int(ctx.clock.unix_timestamp())
    emitter.emit(MessagePosted(wall_id=wall.wall_id, user=poster, message=message, timestamp=ts))
    return {
        "applied": "POST_MESSAGE",
        "address": wall_meta.pubkey,
        "wall_id": wall.wall_id,
        "poster": poster,
        "owner": wall.owner_identity,
        "fee": MESSAGE_FEE,
        "timestamp": ts,
    }


HandlerFn = Callable[[Json, Instruction, DispatchContext, Emitter], Json]

_HANDLERS: Dict[str, HandlerFn] = {
    INITIALIZE_WALL: _initialize_wall,
    POST_MESSAGE: _post_message,
}


def run_instruction(
    state: Json,
    ix: Instruction,
    *,
    signers: Iterable[str],
    clock: Clock,
    program_id: str,
    sink: Optional[EventSink] = None,
) -> DispatchResult:
    """Execute one instruction on a working copy of `state`.

    `state` is never mutated. On success the returned DispatchResult carries the
    new state and the emitted records; on failure the first error is raised.
    """
    handler = _HANDLERS.get(ix.name)
    if handler is None:
        raise unknown_instruction(ix.name)

    ctx = DispatchContext(program_id=str(program_id), signers=frozenset(signers), clock=clock)
    working: Json = ensure_state(copy.deepcopy(state))
    recorder = _RecordingSink(sink)

    try:
        meta = handler(working, ix, ctx, Emitter(recorder))
    except ApplyError:
        raise
    except Exception as e:
        code = getattr(e, "code", None)
        raise ApplyError(
            "runtime_error",
            type(e).__name__,
            {"instruction": ix.name, "error": str(e), "code": code},
        ) from e

    return DispatchResult(state=working, meta=meta, events=list(recorder.records))


def apply_instruction(
    state: Json,
    ix: Instruction,
    *,
    signers: Iterable[str],
    clock: Clock,
    program_id: str,
    sink: Optional[EventSink] = None,
) -> Json:
    """In-place variant: replaces the contents of `state` only on success."""
    result = run_instruction(state, ix, signers=signers, clock=clock, program_id=program_id, sink=sink)
    state.clear()
    state.update(result.state)
    return result.meta
