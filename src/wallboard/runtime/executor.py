# src/wallboard/runtime/executor.py
from __future__ import annotations

import copy
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from wallboard.ledger.constants import DEFAULT_PROGRAM_ID, RUNTIME_TX_FEE, SYSTEM_OWNER
from wallboard.ledger.state import LedgerView, _as_int, ensure_account, ensure_state, get_account
from wallboard.runtime import wall_registry
from wallboard.runtime.addressing import derive_wall_address, parse_identity
from wallboard.runtime.chain_config import ChainConfig, load_chain_config
from wallboard.runtime.clock import Clock, SystemClock
from wallboard.runtime.dispatch import run_instruction
from wallboard.runtime.errors import ApplyError, RuntimeErrorCode
from wallboard.runtime.instructions import decode_payload
from wallboard.runtime.log_events import log_event
from wallboard.runtime.sqlite_db import SqliteDB, SqliteEventLog, SqliteLedgerStore, SqliteReceiptStore
from wallboard.runtime.tx_admission import admit_tx
from wallboard.runtime.tx_admission_types import TxEnvelope
from wallboard.runtime.tx_id import compute_tx_id_from_envelope

Json = Dict[str, Any]

log = logging.getLogger("wallboard.executor")


def _now_ms() -> int:
    return int(time.time() * 1000)


class ExecutorError(RuntimeError):
    pass


class WallExecutor:
    """Ledger runtime host: signed-transaction dispatch over a SQLite-backed state.

    One submitted envelope is one instruction. The dispatcher runs against a
    working copy; the new snapshot, its events and the receipt are then written
    in a single SQLite transaction. Only after that commit does the in-memory
    state advance.
    """

    def __init__(
        self,
        *,
        db_path: str,
        node_id: str,
        chain_id: str,
        program_id: str = DEFAULT_PROGRAM_ID,
        clock: Optional[Clock] = None,
        verify_sigs: bool = True,
    ) -> None:
        self.node_id = str(node_id)
        self.chain_id = str(chain_id)
        self.program_id = str(parse_identity(program_id, field="program_id"))
        self.clock: Clock = clock or SystemClock()
        self.verify_sigs = bool(verify_sigs)
        self._lock = threading.RLock()

        self.db_path = str(db_path)
        self._db = SqliteDB(path=self.db_path)
        self._db.init_schema()

        self._ledger_store = SqliteLedgerStore(db=self._db)
        self._events = SqliteEventLog(db=self._db)
        self._receipts = SqliteReceiptStore(db=self._db)

        if self._ledger_store.exists():
            self.state = self._ledger_store.read()
        else:
            self.state = self._initial_state()
            self._ledger_store.write(self.state)
        ensure_state(self.state)

        st_chain_id = str(self.state.get("chain_id") or "").strip()
        if st_chain_id != self.chain_id:
            raise ExecutorError(f"chain_id mismatch: db={st_chain_id!r} executor={self.chain_id!r}. Refuse to start.")

        st_program_id = str(self.state.get("program_id") or "").strip()
        if st_program_id != self.program_id:
            raise ExecutorError(
                f"program_id mismatch: db={st_program_id!r} executor={self.program_id!r}. Refuse to start."
            )

    def _initial_state(self) -> Json:
        return {
            "chain_id": self.chain_id,
            "program_id": self.program_id,
            "height": 0,
            "accounts": {},
            "fees_collected": 0,
            "created_ms": _now_ms(),
        }

    # ----------------------------
    # Public accessors
    # ----------------------------

    def read_state(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def get_account(self, account_id: str) -> Optional[Json]:
        with self._lock:
            acct = get_account(self.state, account_id)
            if acct is None:
                return None
            return {
                "account_id": str(account_id),
                "lamports": _as_int(acct.get("lamports"), 0),
                "nonce": _as_int(acct.get("nonce"), 0),
                "owner": str(acct.get("owner") or SYSTEM_OWNER),
            }

    def wall_address(self, owner: str, wall_id: int) -> Tuple[str, int]:
        return derive_wall_address(owner, wall_id, self.program_id)

    def get_wall(self, owner: str, wall_id: int) -> wall_registry.WallRecord:
        with self._lock:
            return wall_registry.load(self.state, owner, wall_id, program_id=self.program_id)

    def list_walls(self, owner: Optional[str] = None) -> List[Json]:
        with self._lock:
            out: List[Json] = []
            for addr, rec in wall_registry.iter_walls(self.state, program_id=self.program_id):
                if owner and rec.owner_identity != owner:
                    continue
                out.append({"address": addr, **rec.to_json()})
            return out

    def list_events(
        self,
        *,
        after: int = 0,
        wall_id: Optional[int] = None,
        name: Optional[str] = None,
        limit: int = 100,
    ) -> List[Json]:
        return self._events.list(after=after, wall_id=wall_id, name=name, limit=limit)

    def get_receipt(self, tx_id: str) -> Optional[Json]:
        return self._receipts.get(tx_id)

    # ----------------------------
    # Funding
    # ----------------------------

    def airdrop(self, account_id: str, lamports: int) -> Json:
        """Credit a wallet. Dev/test faucet; callers gate it on config."""
        acct_id = str(parse_identity(account_id, field="account"))
        amt = _as_int(lamports, 0)
        if amt <= 0:
            raise ApplyError("invalid_payload", "bad_amount", {"lamports": lamports})

        with self._lock:
            working = copy.deepcopy(self.state)
            acct = ensure_account(working, acct_id)
            if str(acct.get("owner") or SYSTEM_OWNER) != SYSTEM_OWNER:
                raise ApplyError("forbidden", "not_a_wallet", {"account": acct_id})
            acct["lamports"] = _as_int(acct.get("lamports"), 0) + amt
            self._ledger_store.write(working)
            self.state = working
            balance = _as_int(acct["lamports"], 0)

        log_event(log, "airdrop", account=acct_id, lamports=amt, balance=balance)
        return {"ok": True, "account": acct_id, "lamports": amt, "balance": balance}

    # ----------------------------
    # Transactions
    # ----------------------------

    def submit_tx(self, env: Any) -> Json:
        """Admit, dispatch and commit one signed envelope. Returns its receipt."""
        raw = env.to_json() if isinstance(env, TxEnvelope) else env
        try:
            env_obj = TxEnvelope.from_json(raw)
        except (TypeError, ValueError) as e:
            return {"ok": False, "error": {"code": "bad_shape", "reason": "bad_envelope", "details": {"error": str(e)}}}

        tx_id = compute_tx_id_from_envelope(self.chain_id, env_obj)

        with self._lock:
            prior = self._receipts.get(tx_id)
            if prior is not None and prior.get("ok"):
                return {**prior, "status": "already_known"}

            verdict = admit_tx(raw, LedgerView.from_ledger(self.state), chain_id=self.chain_id, verify_sig=self.verify_sigs)
            if not verdict.ok:
                details = verdict.details or {}
                err = ApplyError(verdict.code, verdict.reason, details, details.get("error_code"))
                return self._reject(tx_id, env_obj, err)

            try:
                ix = decode_payload(env_obj.payload)
                result = run_instruction(
                    self.state,
                    ix,
                    signers={env_obj.signer},
                    clock=self.clock,
                    program_id=self.program_id,
                )
                working = result.state
                self._charge_fee(working, env_obj)
            except ApplyError as e:
                return self._reject(tx_id, env_obj, e)

            height = _as_int(working.get("height"), 0) + 1
            working["height"] = height

            receipt: Json = {
                "ok": True,
                "status": "committed",
                "tx_id": tx_id,
                "tx_type": env_obj.tx_type,
                "signer": env_obj.signer,
                "nonce": int(env_obj.nonce),
                "height": height,
                "fee": RUNTIME_TX_FEE,
                "result": result.meta,
                "events": [r.to_json() for r in result.events],
                "logs": [r.log_line for r in result.events],
            }

            try:
                with self._db.write_tx() as con:
                    SqliteLedgerStore.write_in(con, working)
                    receipt["event_seqs"] = SqliteEventLog.append_in(
                        con, tx_id=tx_id, height=height, records=result.events
                    )
                    SqliteReceiptStore.put_in(con, tx_id=tx_id, receipt=receipt)
            except Exception as e:
                return self._reject(tx_id, env_obj, ApplyError("runtime_error", "CommitFailed", {"error": str(e)}))

            self.state = working

        meta = result.meta
        if meta.get("applied") == "INITIALIZE_WALL":
            log_event(log, "wall_initialized", tx_id=tx_id, address=meta.get("address"), **meta.get("wall", {}))
        elif meta.get("applied") == "POST_MESSAGE":
            log_event(
                log,
                "message_posted",
                tx_id=tx_id,
                wall_id=meta.get("wall_id"),
                poster=meta.get("poster"),
                owner=meta.get("owner"),
                fee=meta.get("fee"),
            )
        for rec in result.events:
            log_event(log, "event_emitted", level=logging.DEBUG, tx_id=tx_id, name=rec.name, data=rec.data_b64)
        log_event(log, "tx_applied", tx_id=tx_id, tx_type=env_obj.tx_type, signer=env_obj.signer, height=height)
        return receipt

    def _charge_fee(self, working: Json, env: TxEnvelope) -> None:
        """Runtime fee + nonce bump for the fee payer; part of the same commit."""
        payer = ensure_account(working, env.signer)
        bal = _as_int(payer.get("lamports"), 0)
        if bal < RUNTIME_TX_FEE:
            raise ApplyError(
                "insufficient_funds",
                "InsufficientFundsForFee",
                {"balance": bal, "fee": RUNTIME_TX_FEE},
                int(RuntimeErrorCode.TRANSFER_FAILED),
            )
        payer["lamports"] = bal - RUNTIME_TX_FEE
        payer["nonce"] = int(env.nonce)
        working["fees_collected"] = _as_int(working.get("fees_collected"), 0) + RUNTIME_TX_FEE

    def _reject(self, tx_id: str, env: TxEnvelope, err: ApplyError) -> Json:
        receipt: Json = {
            "ok": False,
            "status": "rejected",
            "tx_id": tx_id,
            "tx_type": env.tx_type,
            "signer": env.signer,
            "nonce": int(env.nonce),
            "error": err.to_json(),
        }
        try:
            self._receipts.put(tx_id=tx_id, receipt=receipt)
        except Exception as e:
            # The rejection stands even if its receipt could not be stored.
            receipt["receipt_stored"] = False
            log_event(
                log,
                "receipt_write_failed",
                level=logging.ERROR,
                tx_id=tx_id,
                reason=err.reason,
                error=f"{type(e).__name__}: {e}",
            )
        log_event(
            log,
            "tx_rejected",
            level=logging.WARNING,
            tx_id=tx_id,
            tx_type=env.tx_type,
            signer=env.signer,
            code=err.code,
            reason=err.reason,
            error_code=err.error_code,
        )
        return receipt

    # ----------------------------
    # Construction
    # ----------------------------

    @classmethod
    def from_config(cls, cfg: ChainConfig, *, clock: Optional[Clock] = None) -> "WallExecutor":
        return cls(
            db_path=cfg.db_path,
            node_id=cfg.node_id,
            chain_id=cfg.chain_id,
            program_id=cfg.program_id,
            clock=clock,
        )

    @classmethod
    def from_env(cls) -> "WallExecutor":
        return cls.from_config(load_chain_config())
