from __future__ import annotations

from fastapi import APIRouter

from wallboard.api.routes_public_parts.accounts import router as accounts_router
from wallboard.api.routes_public_parts.dev import router as dev_router
from wallboard.api.routes_public_parts.events import router as events_router
from wallboard.api.routes_public_parts.health import router as health_router
from wallboard.api.routes_public_parts.tx import router as tx_router
from wallboard.api.routes_public_parts.walls import router as walls_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])
public_router.include_router(walls_router, prefix="/v1", tags=["walls"])
public_router.include_router(events_router, prefix="/v1", tags=["events"])
public_router.include_router(accounts_router, prefix="/v1", tags=["accounts"])
public_router.include_router(dev_router, prefix="/v1", tags=["dev"])
