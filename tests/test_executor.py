from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from wallboard.ledger.constants import MESSAGE_FEE, RUNTIME_TX_FEE, WALL_RENT_LAMPORTS
from wallboard.runtime.addressing import U64_MAX
from wallboard.runtime.clock import FixedClock
from wallboard.runtime.errors import ApplyError
from wallboard.runtime.executor import ExecutorError, WallExecutor
from wallboard.runtime.instructions import initialize_wall_ix, post_message_ix
from wallboard.runtime.sqlite_db import SqliteEventLog, SqliteReceiptStore
from wallboard.testing.sigtools import identity, signed_envelope

CHAIN = "wallboard-exec-test"
NOW = 1_700_000_000

A = identity("alice")
B = identity("bob")

ONE = 1_000_000_000


def _executor(db_path: str, **kw) -> WallExecutor:
    return WallExecutor(db_path=db_path, node_id="n1", chain_id=CHAIN, clock=FixedClock(NOW), **kw)


def _init_env(nonce: int = 1):
    return signed_envelope(initialize_wall_ix(A, 7), label="alice", nonce=nonce, chain_id=CHAIN)


def _post_env(message: str, nonce: int, **kw):
    return signed_envelope(post_message_ix(B, A, 7, message, **kw), label="bob", nonce=nonce, chain_id=CHAIN)


@pytest.fixture()
def ex(tmp_path: Path) -> WallExecutor:
    e = _executor(str(tmp_path / "wall.db"))
    e.airdrop(A, ONE)
    e.airdrop(B, ONE)
    return e


def test_init_and_post_commit(ex: WallExecutor) -> None:
    r = ex.submit_tx(_init_env())
    assert r["ok"] is True
    assert r["status"] == "committed"
    assert r["height"] == 1
    assert r["fee"] == RUNTIME_TX_FEE
    assert r["logs"][0].startswith("Program data: ")

    alice = ex.get_account(A)
    assert alice["lamports"] == ONE - WALL_RENT_LAMPORTS - RUNTIME_TX_FEE
    assert alice["nonce"] == 1

    r = ex.submit_tx(_post_env("hello", 1))
    assert r["ok"] is True
    assert r["result"]["timestamp"] == NOW

    assert ex.get_account(B)["lamports"] == ONE - MESSAGE_FEE - RUNTIME_TX_FEE
    assert ex.get_account(A)["lamports"] == ONE - WALL_RENT_LAMPORTS - RUNTIME_TX_FEE + MESSAGE_FEE

    events = ex.list_events()
    assert [e["name"] for e in events] == ["WallInitialized", "MessagePosted"]
    assert events[0]["seq"] < events[1]["seq"]
    assert events[1]["fields"] == {"wall_id": 7, "user": B, "message": "hello", "timestamp": NOW}
    assert ex.list_events(name="MessagePosted", wall_id=7)[0]["tx_id"] == r["tx_id"]

    state = ex.read_state()
    assert state["height"] == 2
    assert state["fees_collected"] == 2 * RUNTIME_TX_FEE


def test_state_survives_restart(tmp_path: Path) -> None:
    db = str(tmp_path / "wall.db")
    ex = _executor(db)
    ex.airdrop(A, ONE)
    assert ex.submit_tx(_init_env())["ok"] is True

    ex2 = _executor(db)
    rec = ex2.get_wall(A, 7)
    assert rec.owner_identity == A
    assert ex2.get_account(A)["nonce"] == 1
    assert len(ex2.list_events()) == 1
    assert ex2.list_walls(owner=A)[0]["address"] == ex2.wall_address(A, 7)[0]


def test_chain_id_mismatch_refuses_to_start(tmp_path: Path) -> None:
    db = str(tmp_path / "wall.db")
    _executor(db)
    with pytest.raises(ExecutorError):
        WallExecutor(db_path=db, node_id="n1", chain_id="other-chain")


def test_rejected_post_consumes_nothing(ex: WallExecutor) -> None:
    assert ex.submit_tx(_init_env())["ok"] is True
    before = ex.get_account(B)

    r = ex.submit_tx(_post_env("", 1))
    assert r["ok"] is False
    assert r["status"] == "rejected"
    assert r["error"]["error_code"] == 6000
    assert r["error"]["reason"] == "EmptyMessage"

    # No fee, no nonce, no event.
    assert ex.get_account(B) == before
    assert [e["name"] for e in ex.list_events()] == ["WallInitialized"]
    assert ex.get_receipt(r["tx_id"])["ok"] is False

    # The same nonce is still usable.
    assert ex.submit_tx(_post_env("hello", 1))["ok"] is True


def test_wrong_owner_is_rejected_with_code(ex: WallExecutor) -> None:
    ex.submit_tx(_init_env())
    r = ex.submit_tx(_post_env("hello", 1, dev_wallet=identity("carol")))
    assert r["error"]["error_code"] == 6003
    assert ex.get_account(identity("carol")) is None


def test_nonce_must_advance_by_one(ex: WallExecutor) -> None:
    r = ex.submit_tx(_init_env(nonce=2))
    assert r["ok"] is False
    assert r["error"]["reason"] == "nonce_mismatch"
    assert r["error"]["details"] == {"expected": 1, "got": 2}


def test_signature_must_match_signer(ex: WallExecutor) -> None:
    forged = signed_envelope(post_message_ix(B, A, 7, "hi"), label="mallory", nonce=1, chain_id=CHAIN, signer=B)
    r = ex.submit_tx(forged)
    assert r["ok"] is False
    assert r["error"]["reason"] == "invalid_signature"

    unsigned = dict(_init_env())
    unsigned["sig"] = ""
    assert ex.submit_tx(unsigned)["error"]["reason"] == "missing_signature"


def test_signature_is_bound_to_chain(ex: WallExecutor) -> None:
    other = signed_envelope(initialize_wall_ix(A, 7), label="alice", nonce=1, chain_id="some-other-chain")
    assert ex.submit_tx(other)["error"]["reason"] == "invalid_signature"


def test_unknown_signer_account(ex: WallExecutor) -> None:
    env = signed_envelope(initialize_wall_ix(identity("dave"), 1), label="dave", nonce=1, chain_id=CHAIN)
    r = ex.submit_tx(env)
    assert r["error"]["reason"] == "AccountNotFound"


def test_tx_type_must_match_instruction(ex: WallExecutor) -> None:
    env = dict(_init_env())
    env["tx_type"] = "POST_MESSAGE"
    r = ex.submit_tx(env)
    assert r["error"]["reason"] == "tx_type_instruction_mismatch"


def test_resubmitting_a_committed_tx_is_idempotent(ex: WallExecutor) -> None:
    ex.submit_tx(_init_env())
    env = _post_env("once", 1)

    first = ex.submit_tx(env)
    after_first = ex.get_account(B)
    again = ex.submit_tx(env)

    assert again["ok"] is True
    assert again["status"] == "already_known"
    assert again["tx_id"] == first["tx_id"]
    assert ex.get_account(B) == after_first
    assert len(ex.list_events(name="MessagePosted")) == 1


def test_rent_requires_funds(tmp_path: Path) -> None:
    ex = _executor(str(tmp_path / "wall.db"))
    ex.airdrop(A, WALL_RENT_LAMPORTS - 1)
    r = ex.submit_tx(_init_env())
    assert r["error"]["reason"] == "TransferFailed"
    assert r["error"]["error_code"] == 1


def test_runtime_fee_shortfall_rolls_back_init(tmp_path: Path) -> None:
    ex = _executor(str(tmp_path / "wall.db"))
    ex.airdrop(A, WALL_RENT_LAMPORTS)

    r = ex.submit_tx(_init_env())
    assert r["error"]["reason"] == "InsufficientFundsForFee"

    with pytest.raises(ApplyError) as e:
        ex.get_wall(A, 7)
    assert e.value.reason == "NotFound"
    assert ex.get_account(A)["lamports"] == WALL_RENT_LAMPORTS
    assert ex.list_events() == []


def test_event_persistence_failure_rolls_back_everything(ex: WallExecutor, monkeypatch, tmp_path: Path) -> None:
    ex.submit_tx(_init_env())
    state_before = ex.read_state()
    env = _post_env("hello", 1)

    def _boom(con, *, tx_id, height, records):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(SqliteEventLog, "append_in", staticmethod(_boom))

    r = ex.submit_tx(env)
    assert r["ok"] is False
    assert r["error"]["reason"] == "CommitFailed"
    assert ex.read_state() == state_before
    assert [e["name"] for e in ex.list_events()] == ["WallInitialized"]

    # Nothing reached disk either.
    reopened = _executor(ex.db_path)
    assert reopened.read_state() == state_before

    monkeypatch.undo()
    r = ex.submit_tx(env)
    assert r["ok"] is True
    assert ex.get_receipt(r["tx_id"])["status"] == "committed"


def test_airdrop_validation(ex: WallExecutor) -> None:
    with pytest.raises(ApplyError):
        ex.airdrop(A, 0)
    with pytest.raises(ApplyError) as e:
        ex.airdrop("not-a-key", 10)
    assert e.value.reason == "bad_identity"

    ex.submit_tx(_init_env())
    with pytest.raises(ApplyError) as e:
        ex.airdrop(ex.wall_address(A, 7)[0], 10)
    assert e.value.reason == "not_a_wallet"


def test_wall_ids_above_i64_commit_and_filter(tmp_path: Path) -> None:
    db = str(tmp_path / "wall.db")
    ex = _executor(db)
    ex.airdrop(A, ONE)
    ex.airdrop(B, ONE)

    top = signed_envelope(initialize_wall_ix(A, U64_MAX), label="alice", nonce=1, chain_id=CHAIN)
    mid = signed_envelope(initialize_wall_ix(A, 2**63), label="alice", nonce=2, chain_id=CHAIN)
    assert ex.submit_tx(top)["ok"] is True
    assert ex.submit_tx(mid)["ok"] is True

    post = signed_envelope(post_message_ix(B, A, U64_MAX, "edge"), label="bob", nonce=1, chain_id=CHAIN)
    assert ex.submit_tx(post)["ok"] is True

    events = ex.list_events(wall_id=U64_MAX)
    assert [e["name"] for e in events] == ["WallInitialized", "MessagePosted"]
    assert all(e["wall_id"] == U64_MAX for e in events)
    assert events[1]["fields"]["wall_id"] == U64_MAX

    assert [e["wall_id"] for e in ex.list_events(wall_id=2**63)] == [2**63]
    assert ex.list_events(wall_id=7) == []

    reopened = _executor(db)
    assert reopened.get_wall(A, U64_MAX).wall_id == U64_MAX
    assert len(reopened.list_events(wall_id=U64_MAX)) == 2


def test_rejection_is_returned_when_its_receipt_cannot_be_stored(ex: WallExecutor, monkeypatch) -> None:
    def _locked(self, *, tx_id, receipt):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(SqliteReceiptStore, "put", _locked)

    r = ex.submit_tx(_init_env(nonce=2))
    assert r["ok"] is False
    assert r["status"] == "rejected"
    assert r["error"]["reason"] == "nonce_mismatch"
    assert r["receipt_stored"] is False
    assert ex.get_receipt(r["tx_id"]) is None
    assert ex.get_account(A)["nonce"] == 0
