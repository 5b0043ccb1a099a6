"""
FastAPI application entry point for the TrashTag service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from trashtag.config import get_settings
from trashtag.dependencies import get_document_store, get_identity_client
from trashtag.routes import router as api_router
from trashtag.session import SessionStore
from trashtag.store import StoreError
from trashtag.views import router as page_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sessions = SessionStore(get_identity_client(), get_document_store())
    sessions.start()
    app.state.sessions = sessions
    try:
        yield
    finally:
        sessions.stop()
        app.state.sessions = None


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.exception("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"detail": "Page not found"})
    return await http_exception_handler(request, exc)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="TrashTag Backend (FastAPI)", version="0.1.0", lifespan=lifespan)
    app.include_router(api_router, prefix=settings.api_prefix)
    app.include_router(page_router)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    return app


app = create_app()
