from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    ex = getattr(request.app.state, "executor", None)
    out: Dict[str, Any] = {"ok": True, "executor": ex is not None}
    if ex is not None:
        out["chain_id"] = getattr(ex, "chain_id", "")
        out["program_id"] = getattr(ex, "program_id", "")
    return out
