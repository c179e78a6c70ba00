from __future__ import annotations

from fastapi import APIRouter, FastAPI

from medsim_api.api.routes import chat, health


def include_api_routes(app: FastAPI) -> None:
    """Register all API routers with the FastAPI application."""

    api_router = APIRouter(prefix="/api/v1")
    api_router.include_router(chat.router)
    api_router.include_router(health.router)
    app.include_router(api_router)


__all__ = ["include_api_routes"]
