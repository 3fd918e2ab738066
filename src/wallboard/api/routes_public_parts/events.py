from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from wallboard.api.routes_public_parts.common import WALL_ID_MAX, _executor
from wallboard.api.schemas import EventsPage

router = APIRouter()

Json = Dict[str, Any]


@router.get("/events", response_model=EventsPage)
def events_list(
    request: Request,
    after: int = Query(default=0, ge=0),
    wall_id: Optional[int] = Query(default=None, ge=0, le=WALL_ID_MAX),
    name: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
) -> Json:
    """Ordered event log. Page with `after=<last seq seen>`."""
    events = _executor(request).list_events(after=after, wall_id=wall_id, name=name, limit=limit)
    return {"events": events, "next_after": events[-1]["seq"] if events else None}
