"""
FastAPI application entry point for the household service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from helpinghand.config import get_settings
from helpinghand.errors import Unauthenticated
from helpinghand.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )
    app = FastAPI(title="HelpingHand Household Service", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)

    @app.exception_handler(Unauthenticated)
    async def unauthenticated_handler(request: Request, exc: Unauthenticated):
        return JSONResponse(status_code=401, content={"detail": "Not logged in."})

    return app


app = create_app()
