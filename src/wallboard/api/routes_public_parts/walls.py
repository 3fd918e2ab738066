from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Path, Query, Request

from wallboard.api.routes_public_parts.common import WALL_ID_MAX, _executor, _identity
from wallboard.api.schemas import WallAddressOut, WallOut

router = APIRouter()

Json = Dict[str, Any]


@router.get("/walls", response_model=List[WallOut])
def walls_list(request: Request, owner: Optional[str] = Query(default=None)) -> List[Json]:
    ex = _executor(request)
    return ex.list_walls(_identity(owner, "owner") if owner else None)


@router.get("/walls/{owner}/{wall_id}", response_model=WallOut)
def wall_get(request: Request, owner: str, wall_id: int = Path(..., ge=0, le=WALL_ID_MAX)) -> Json:
    """Registry load: 404 NotFound if no record exists at the derived address."""
    ex = _executor(request)
    owner_id = _identity(owner, "owner")
    rec = ex.get_wall(owner_id, wall_id)
    addr, _bump = ex.wall_address(owner_id, wall_id)
    return {"address": addr, **rec.to_json()}


@router.get("/walls/{owner}/{wall_id}/address", response_model=WallAddressOut)
def wall_address(request: Request, owner: str, wall_id: int = Path(..., ge=0, le=WALL_ID_MAX)) -> Json:
    ex = _executor(request)
    addr, bump = ex.wall_address(_identity(owner, "owner"), wall_id)
    return {"address": addr, "bump_nonce": bump}
