from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from wallboard.api.errors import ApiError, status_for
from wallboard.api.routes_public_parts.common import _executor
from wallboard.api.schemas import TxSubmitRequest
from wallboard.runtime.errors import ApplyError

router = APIRouter()

Json = Dict[str, Any]


@router.post("/tx/submit")
def tx_submit(request: Request, body: TxSubmitRequest):
    """Submit a signed envelope carrying one instruction.

    Returns the receipt. Rejections come back with the error status and the
    same receipt shape ({ok: false, error: {...}}).
    """
    ex = _executor(request)
    receipt = ex.submit_tx(body.model_dump())
    if receipt.get("ok"):
        return receipt

    err = receipt.get("error") if isinstance(receipt.get("error"), dict) else {}
    status = status_for(ApplyError(str(err.get("code") or ""), str(err.get("reason") or "")))
    return JSONResponse(status_code=status, content=receipt)


@router.get("/tx/{tx_id}")
def tx_receipt(request: Request, tx_id: str) -> Json:
    rec = _executor(request).get_receipt(tx_id)
    if rec is None:
        raise ApiError.not_found("tx_not_found", "no receipt for tx_id", {"tx_id": tx_id})
    return rec
