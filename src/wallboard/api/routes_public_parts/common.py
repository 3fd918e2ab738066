from __future__ import annotations

from fastapi import Request

from wallboard.api.errors import ApiError
from wallboard.runtime.addressing import U64_MAX, parse_identity
from wallboard.runtime.errors import ApplyError


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _identity(value: str, field: str) -> str:
    try:
        return str(parse_identity(value, field=field))
    except ApplyError as e:
        raise ApiError.bad_request("bad_identity", f"{field} is not a base58 identity", e.details or {}) from e


WALL_ID_MAX = U64_MAX
