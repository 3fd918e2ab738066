from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from wallboard.api.errors import ApiError
from wallboard.api.routes_public_parts.common import _executor, _identity
from wallboard.api.schemas import AccountOut

router = APIRouter()


@router.get("/accounts/{account_id}", response_model=AccountOut)
def account_get(request: Request, account_id: str) -> Dict[str, Any]:
    acct = _executor(request).get_account(_identity(account_id, "account_id"))
    if acct is None:
        raise ApiError.not_found("account_not_found", "account does not exist", {"account_id": account_id})
    return acct
