"""
Vidtube — Main FastAPI Application

Engagement & view-composition backend for a video-sharing platform.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from vidtube.core.config import get_settings
from vidtube.core.database import dispose_db, init_db
from vidtube.core.exceptions import VidtubeError
from vidtube.schemas.schemas import ErrorResponse

settings = get_settings()

# ── Logging ──────────────────────────────────────────────────────────────

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level)
    ),
)

logger = structlog.get_logger()


# ── Lifespan ─────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    logger.info("Starting Vidtube", version=settings.app_version)
    await init_db()
    logger.info("Vidtube ready", api_prefix=settings.api_prefix)

    yield

    await dispose_db()
    logger.info("Shutting down Vidtube")


# ── App ──────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    description="Likes, subscriptions, sessions and composed read views for a video-sharing platform",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


# ── Error envelope ───────────────────────────────────────────────────────

def _error_response(status_code: int, message: str, kind: str, errors=None, headers=None) -> JSONResponse:
    body = ErrorResponse(status_code=status_code, message=message, kind=kind, errors=errors or [])
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(by_alias=True)),
        headers=headers,
    )


@app.exception_handler(VidtubeError)
async def vidtube_error_handler(request: Request, exc: VidtubeError):
    return _error_response(exc.status_code, exc.message, exc.kind, exc.errors, exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", "invalid_argument", errors)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    kind = "not_found" if exc.status_code == status.HTTP_404_NOT_FOUND else "http_error"
    return _error_response(exc.status_code, str(exc.detail), kind, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", path=request.url.path, error=repr(exc), exc_info=exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Something went wrong", "internal")


# ── Routes ───────────────────────────────────────────────────────────────

from vidtube.api.routes import (  # noqa: E402
    comments, dashboard, healthcheck, likes, playlists, subscriptions, tweets, users, videos,
)

app.include_router(healthcheck.router, prefix=settings.api_prefix)
app.include_router(users.router, prefix=settings.api_prefix)
app.include_router(videos.router, prefix=settings.api_prefix)
app.include_router(comments.router, prefix=settings.api_prefix)
app.include_router(likes.router, prefix=settings.api_prefix)
app.include_router(subscriptions.router, prefix=settings.api_prefix)
app.include_router(tweets.router, prefix=settings.api_prefix)
app.include_router(playlists.router, prefix=settings.api_prefix)
app.include_router(dashboard.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "api_prefix": settings.api_prefix,
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}
