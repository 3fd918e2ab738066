from __future__ import annotations

"""Pydantic request/response schemas for the public API.

These exist only for HTTP input validation and UX stability; the instruction
wire format lives in wallboard.runtime.instructions.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., description="INITIALIZE_WALL or POST_MESSAGE")
    signer: str = Field(..., description="Base58 identity of the signer / fee payer")
    nonce: int = Field(..., ge=0, description="Signer nonce; must be previous + 1")
    payload: Dict[str, Any] = Field(..., description='{"data": <base64 instruction>, "accounts": [...]}')
    sig: str = Field(default="", description="Hex or base64 ed25519 signature")


class AirdropRequest(BaseModel):
    account: str = Field(..., description="Base58 identity to credit")
    lamports: int = Field(..., gt=0)


class WallOut(BaseModel):
    address: str
    owner_identity: str
    wall_id: int
    bump_nonce: int


class WallAddressOut(BaseModel):
    address: str
    bump_nonce: int


class AccountOut(BaseModel):
    account_id: str
    lamports: int
    nonce: int
    owner: str


class EventOut(BaseModel):
    seq: int
    tx_id: str
    height: int
    name: str
    wall_id: int
    fields: Dict[str, Any]
    data: str


class EventsPage(BaseModel):
    events: List[EventOut]
    next_after: Optional[int] = None
