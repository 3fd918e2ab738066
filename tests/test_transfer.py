from __future__ import annotations

import pytest

from wallboard.ledger.state import balance_of, new_account
from wallboard.runtime.errors import ApplyError
from wallboard.runtime.transfer import transfer


def _state():
    return {"accounts": {"alice": new_account(lamports=100), "bob": new_account(lamports=5)}}


def test_transfer_moves_lamports() -> None:
    st = _state()
    out = transfer(st, "alice", "bob", 40, signers={"alice"})
    assert out == {"from": "alice", "to": "bob", "amount": 40}
    assert balance_of(st, "alice") == 60
    assert balance_of(st, "bob") == 45


def test_transfer_creates_destination() -> None:
    st = _state()
    transfer(st, "alice", "carol", 1, signers={"alice"})
    assert balance_of(st, "carol") == 1
    assert st["accounts"]["carol"]["owner"] == "system"


def test_transfer_requires_signer() -> None:
    st = _state()
    with pytest.raises(ApplyError) as e:
        transfer(st, "alice", "bob", 1, signers={"bob"})
    assert e.value.reason == "NotSigner"
    assert balance_of(st, "alice") == 100


def test_transfer_insufficient_lamports() -> None:
    st = _state()
    with pytest.raises(ApplyError) as e:
        transfer(st, "bob", "alice", 6, signers={"bob"})
    assert e.value.reason == "TransferFailed"
    assert e.value.error_code == 1
    assert e.value.details["reason"] == "insufficient_lamports"
    assert balance_of(st, "bob") == 5


def test_transfer_from_missing_account() -> None:
    with pytest.raises(ApplyError) as e:
        transfer(_state(), "zed", "alice", 1, signers={"zed"})
    assert e.value.details["reason"] == "from_account_missing"
