from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wallboard.runtime.errors import ApplyError

_STATUS_BY_CODE: Dict[str, int] = {
    "unauthorized": 403,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "tx_too_large": 413,
}


@dataclass
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})


def status_for(err: ApplyError) -> int:
    if err.code == "runtime_error" and err.reason == "CommitFailed":
        return 500
    return _STATUS_BY_CODE.get(err.code, 400)


def _body(code: str, message: str, details: Any) -> Dict[str, Any]:
    return {"ok": False, "error": {"code": code, "message": message, "details": details}}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_body(exc.code, exc.message, exc.details))

    @app.exception_handler(ApplyError)
    async def _apply_error(_request: Request, exc: ApplyError) -> JSONResponse:
        return JSONResponse(
            status_code=status_for(exc),
            content={"ok": False, "error": exc.to_json()},
        )
