"""Versioned API routing for MeTube."""

from fastapi import APIRouter

from . import routes_system, routes_videos


def get_api_router() -> APIRouter:
    router = APIRouter(prefix="/v1")
    router.include_router(routes_system.router)
    router.include_router(routes_videos.router)
    return router


__all__ = ["get_api_router"]
