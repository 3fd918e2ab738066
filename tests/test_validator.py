from __future__ import annotations

import pytest

from wallboard.ledger.constants import MAX_MESSAGE_LENGTH, MESSAGE_FEE, TX_FEE_BUFFER
from wallboard.runtime import validator
from wallboard.runtime.errors import ApplyError, WallErrorCode


def test_message_length_boundaries() -> None:
    assert validator.check_message_length("x") == 1
    assert validator.check_message_length("a" * MAX_MESSAGE_LENGTH) == 500

    with pytest.raises(ApplyError) as e:
        validator.check_message_length("")
    assert e.value.error_code == WallErrorCode.EMPTY_MESSAGE
    assert e.value.reason == "EmptyMessage"

    with pytest.raises(ApplyError) as e:
        validator.check_message_length("a" * (MAX_MESSAGE_LENGTH + 1))
    assert e.value.error_code == WallErrorCode.MESSAGE_TOO_LONG
    assert e.value.details == {"len": 501, "max": 500}


def test_message_length_counts_utf8_bytes() -> None:
    # "é" is two bytes.
    assert validator.check_message_length("é" * 250) == 500
    with pytest.raises(ApplyError) as e:
        validator.check_message_length("é" * 251)
    assert e.value.reason == "MessageTooLong"


def test_funds_boundary() -> None:
    validator.check_funds(MESSAGE_FEE + TX_FEE_BUFFER)

    with pytest.raises(ApplyError) as e:
        validator.check_funds(MESSAGE_FEE + TX_FEE_BUFFER - 1)
    assert e.value.error_code == WallErrorCode.INSUFFICIENT_FUNDS
    assert e.value.details == {"balance": 50_999_999, "required": 51_000_000}


def test_dev_wallet_must_match_owner() -> None:
    validator.check_dev_wallet("owner", "owner")
    with pytest.raises(ApplyError) as e:
        validator.check_dev_wallet("someone-else", "owner")
    assert e.value.error_code == WallErrorCode.INVALID_DEV_WALLET
    assert e.value.message == "Dev wallet does not match the wall owner."


def test_signer_check() -> None:
    validator.check_signer("bob", {"bob"})
    with pytest.raises(ApplyError) as e:
        validator.check_signer("bob", {"alice"})
    assert e.value.reason == "NotSigner"
    assert e.value.error_code == 3010
