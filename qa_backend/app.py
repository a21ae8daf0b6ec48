"""
FastAPI application entry point for the Q&A backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from qa_backend.config import get_settings
from qa_backend.errors import QaError
from qa_backend.routes import router
from qa_backend.webhooks import router as webhook_router

logger = logging.getLogger(__name__)


async def handle_qa_error(request: Request, exc: QaError) -> JSONResponse:
    logger.info(
        "%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = FastAPI(title="Islamic Q&A Backend (FastAPI)", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(QaError, handle_qa_error)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(webhook_router)
    return app


app = create_app()
