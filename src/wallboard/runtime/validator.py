# src/wallboard/runtime/validator.py
from __future__ import annotations

"""Pure checks for PostMessage. No I/O, no state mutation."""

from typing import Set

from wallboard.ledger.constants import MAX_MESSAGE_LENGTH, MESSAGE_FEE, TX_FEE_BUFFER
from wallboard.runtime import errors


def check_message_length(message: str) -> int:
    """V1: 1 <= len(utf8 bytes) <= MAX_MESSAGE_LENGTH. Returns the byte length."""
    n = len(message.encode("utf-8"))
    if n == 0:
        raise errors.empty_message()
    if n > MAX_MESSAGE_LENGTH:
        raise errors.message_too_long(n, MAX_MESSAGE_LENGTH)
    return n


def check_dev_wallet(supplied: str, owner_identity: str) -> None:
    """V2: the fee recipient must be the wall owner."""
    if supplied != owner_identity:
        raise errors.invalid_dev_wallet(supplied, owner_identity)


def check_funds(balance: int) -> None:
    """V3: poster keeps headroom for the ledger fee on top of MESSAGE_FEE."""
    required = MESSAGE_FEE + TX_FEE_BUFFER
    if int(balance) < required:
        raise errors.insufficient_funds(int(balance), required)


def check_signer(poster: str, signers: Set[str]) -> None:
    """V4"""
    if poster not in signers:
        raise errors.not_signer(poster)
