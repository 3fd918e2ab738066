from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from wallboard.api.errors import ApiError
from wallboard.api.routes_public_parts.common import _executor, _identity
from wallboard.api.schemas import AirdropRequest

router = APIRouter()


@router.post("/dev/airdrop")
def dev_airdrop(request: Request, body: AirdropRequest) -> Dict[str, Any]:
    """Faucet for dev/testnet. Refused unless the chain config allows it."""
    cfg = getattr(request.app.state, "chain_cfg", None)
    if cfg is None or not bool(getattr(cfg, "allow_airdrop", False)) or cfg.mode == "prod":
        raise ApiError.forbidden("airdrop_disabled", "airdrop is disabled on this node", {})
    return _executor(request).airdrop(_identity(body.account, "account"), body.lamports)
