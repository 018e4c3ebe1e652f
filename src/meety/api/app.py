# src/meety/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance, installs CORS for local frontends and maps
`ConcurrentGenerationRejected` to a 409.
Business logic lives in `meety.api.routes`, `meety.session` and `meety.recommender`.
"""

from __future__ import annotations

import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from meety.core.logging import configure_logging
from meety.domain.errors import ConcurrentGenerationRejected

from .routes import router

configure_logging()

app = FastAPI(title="Meety API", version="0.1.0")

# CORS (dev-friendly): allow local frontends to call this API.
# Configure via env:
# - MEETY_CORS_ORIGINS="http://localhost:5173,http://127.0.0.1:5173"
# - MEETY_CORS_ALLOW_LOCAL=0 to disable the default localhost allowance
cors_origins = [s.strip() for s in os.getenv("MEETY_CORS_ORIGINS", "").split(",") if s.strip()]
cors_allow_local = os.getenv("MEETY_CORS_ALLOW_LOCAL", "1").strip().lower() in {"1", "true", "yes", "y"}
cors_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if cors_allow_local and not cors_origins else ""
if cors_origins or cors_origin_regex:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=cors_origin_regex or None,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)


@app.exception_handler(ConcurrentGenerationRejected)
async def _generation_in_flight(request: Request, exc: ConcurrentGenerationRejected) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": {"code": "GENERATION_IN_FLIGHT", "message": str(exc)}})
