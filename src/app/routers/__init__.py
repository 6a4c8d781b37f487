"""API routers for the map editor service."""

from app.routers.editor import router as editor_router

__all__ = ["editor_router"]
