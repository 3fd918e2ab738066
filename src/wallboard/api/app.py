from __future__ import annotations

import os
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wallboard.api.errors import install_error_handlers
from wallboard.api.routes_public import public_router
from wallboard.api.security import RequestSizeLimitMiddleware
from wallboard.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from wallboard.runtime.chain_config import ChainConfig, load_chain_config
from wallboard.runtime.executor import WallExecutor


def build_executor(cfg: Optional[ChainConfig] = None) -> WallExecutor:
    """Build a WallExecutor for the API runtime.

    This wrapper exists so tests can monkeypatch `wallboard.api.app.build_executor`
    without reaching into runtime modules.
    """
    return WallExecutor.from_config(cfg or load_chain_config())


def _parse_cors_origins(mode: str) -> List[str]:
    """Explicit allowlist from WALLBOARD_CORS_ORIGINS; empty disables CORS.

    Wildcard "*" is rejected in prod.
    """
    raw = os.environ.get("WALLBOARD_CORS_ORIGINS", "").strip()
    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in WALLBOARD_CORS_ORIGINS."
            )
        return ["*"]
    return origins


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load chain config + attach executor
      - False: keep lightweight for unit tests / import-time validation
    """
    configure_structured_logging()

    cfg = load_chain_config()
    mode = cfg.mode

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Wallboard Node API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Wallboard Node API")

    app.state.chain_cfg = cfg

    if boot_runtime:
        app.state.executor = build_executor(cfg)
    else:
        app.state.executor = None

    # --- Middleware ---
    # Size limiter is added last so it runs first.
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)

    cors_origins = _parse_cors_origins(mode)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=cors_origins != ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    install_error_handlers(app)

    # --- Routers ---
    app.include_router(public_router)

    return app
