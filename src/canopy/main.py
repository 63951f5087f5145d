# src/canopy/main.py
"""Main entry point for the Canopy application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from canopy.api.v1 import forums_router, nodes_router, replies_router, topics_router
from canopy.core.errors import (
    GuardRejectedError,
    InvalidTransitionError,
    NotFoundError,
    PropagationError,
    StoreError,
)
from canopy.core.settings import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Canopy API",
    description="Forum, topic and reply hierarchy with derived activity aggregates",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(forums_router, prefix="/api/v1")
app.include_router(topics_router, prefix="/api/v1")
app.include_router(replies_router, prefix="/api/v1")
app.include_router(nodes_router, prefix="/api/v1")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(GuardRejectedError)
async def guard_rejected_handler(request: Request, exc: GuardRejectedError) -> JSONResponse:
    code = (
        status.HTTP_429_TOO_MANY_REQUESTS
        if exc.reason == GuardRejectedError.FLOOD
        else status.HTTP_409_CONFLICT
    )
    return JSONResponse(status_code=code, content={"detail": str(exc), "reason": exc.reason})


@app.exception_handler(PropagationError)
async def propagation_error_handler(request: Request, exc: PropagationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "propagation": exc.report.to_schema().model_dump()},
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Content store unavailable"},
    )


@app.on_event("startup")
async def on_startup() -> None:
    logger.info("%s %s starting", settings.app_name, settings.app_version)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Canopy API",
        "version": settings.app_version,
        "description": "Forum, topic and reply hierarchy with derived activity aggregates",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("canopy.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
