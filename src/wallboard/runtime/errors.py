# src/wallboard/runtime/errors.py
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

Json = Dict[str, Any]


class WallErrorCode(IntEnum):
    """Program error codes. Clients key on these numbers."""

    EMPTY_MESSAGE = 6000
    MESSAGE_TOO_LONG = 6001
    INSUFFICIENT_FUNDS = 6002
    INVALID_DEV_WALLET = 6003


class RuntimeErrorCode(IntEnum):
    """Codes surfaced by the ledger runtime / account framework."""

    ALREADY_INITIALIZED = 0
    TRANSFER_FAILED = 1
    INSTRUCTION_FALLBACK_NOT_FOUND = 101
    INSTRUCTION_DID_NOT_DESERIALIZE = 102
    ADDRESS_MISMATCH = 2006
    ACCOUNT_NOT_ENOUGH_KEYS = 3005
    ACCOUNT_NOT_MUTABLE = 3006
    INVALID_PROGRAM_ID = 3008
    NOT_SIGNER = 3010
    NOT_FOUND = 3012


_MESSAGES: Dict[int, str] = {
    WallErrorCode.EMPTY_MESSAGE: "Message cannot be empty.",
    WallErrorCode.MESSAGE_TOO_LONG: "Message is too long.",
    WallErrorCode.INSUFFICIENT_FUNDS: "Insufficient funds to pay the message fee.",
    WallErrorCode.INVALID_DEV_WALLET: "Dev wallet does not match the wall owner.",
}


@dataclass
class ApplyError(Exception):
    """Canonical error type for instruction dispatch failures."""

    code: str
    reason: str
    details: Any | None = None
    error_code: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"

    @property
    def message(self) -> str:
        if self.error_code is not None and self.error_code in _MESSAGES:
            return _MESSAGES[self.error_code]
        return self.reason

    def to_json(self) -> Json:
        return {
            "code": self.code,
            "reason": self.reason,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# ---------------------------------------------------------------------------
# Constructors (one per named failure)
# ---------------------------------------------------------------------------

def empty_message() -> ApplyError:
    return ApplyError("invalid_input", "EmptyMessage", {"len": 0}, int(WallErrorCode.EMPTY_MESSAGE))


def message_too_long(length: int, limit: int) -> ApplyError:
    return ApplyError(
        "invalid_input",
        "MessageTooLong",
        {"len": int(length), "max": int(limit)},
        int(WallErrorCode.MESSAGE_TOO_LONG),
    )


def insufficient_funds(balance: int, required: int) -> ApplyError:
    return ApplyError(
        "insufficient_funds",
        "InsufficientFunds",
        {"balance": int(balance), "required": int(required)},
        int(WallErrorCode.INSUFFICIENT_FUNDS),
    )


def invalid_dev_wallet(supplied: str, expected: str) -> ApplyError:
    return ApplyError(
        "invalid_input",
        "InvalidDevWallet",
        {"supplied": supplied, "expected": expected},
        int(WallErrorCode.INVALID_DEV_WALLET),
    )


def not_signer(account: str) -> ApplyError:
    return ApplyError("unauthorized", "NotSigner", {"account": account}, int(RuntimeErrorCode.NOT_SIGNER))


def already_initialized(address: str) -> ApplyError:
    return ApplyError(
        "conflict",
        "AlreadyInitialized",
        {"address": address},
        int(RuntimeErrorCode.ALREADY_INITIALIZED),
    )


def not_found(address: str) -> ApplyError:
    return ApplyError("not_found", "NotFound", {"address": address}, int(RuntimeErrorCode.NOT_FOUND))


def address_mismatch(details: Json) -> ApplyError:
    return ApplyError("addressing", "AddressMismatch", details, int(RuntimeErrorCode.ADDRESS_MISMATCH))


def transfer_failed(details: Json) -> ApplyError:
    return ApplyError("runtime_error", "TransferFailed", details, int(RuntimeErrorCode.TRANSFER_FAILED))


def bad_instruction(reason: str, details: Json | None = None) -> ApplyError:
    return ApplyError(
        "invalid_tx",
        reason,
        details or {},
        int(RuntimeErrorCode.INSTRUCTION_DID_NOT_DESERIALIZE),
    )


def unknown_instruction(discriminator: str) -> ApplyError:
    return ApplyError(
        "invalid_tx",
        "InstructionFallbackNotFound",
        {"discriminator": discriminator},
        int(RuntimeErrorCode.INSTRUCTION_FALLBACK_NOT_FOUND),
    )


__all__ = [
    "ApplyError",
    "RuntimeErrorCode",
    "WallErrorCode",
    "address_mismatch",
    "already_initialized",
    "bad_instruction",
    "empty_message",
    "insufficient_funds",
    "invalid_dev_wallet",
    "message_too_long",
    "not_found",
    "not_signer",
    "transfer_failed",
    "unknown_instruction",
]
