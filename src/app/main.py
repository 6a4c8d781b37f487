"""GeoNexus map editor service.

Main FastAPI application.
"""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.config import Settings, settings
from app.routers import editor_router
from mapedit.context import EditorContext
from mapedit.controller import ToolModeController
from mapedit.layers import BaseLayer
from mapedit.records import InMemoryRecordStore
from mapedit.surface import HeadlessSurface


def configure_logging(level: str) -> None:
    """Route loguru output to stderr at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def create_editor(cfg: Settings) -> ToolModeController:
    """Build one editing session on a headless surface."""
    surface = HeadlessSurface(
        center=(cfg.map_center_lat, cfg.map_center_lng),
        zoom=cfg.map_zoom,
        size=(cfg.canvas_width, cfg.canvas_height),
    )
    ctx = EditorContext(store=InMemoryRecordStore())
    return ToolModeController(
        ctx,
        surface,
        base_layers=[BaseLayer("osm", "OpenStreetMap", cfg.base_tile_url)],
        page_ratio=cfg.print_page_ratio,
        print_height_fraction=cfg.print_box_height_fraction,
        capture_scale=cfg.export_capture_scale,
        export_settle_seconds=cfg.export_settle_seconds,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info(f"  {settings.app_name} v0.1.0 - INITIALIZING")
    logger.info("=" * 60)

    app.state.editor = create_editor(settings)
    app.state.export_dir = settings.export_dir
    logger.info(
        f"Editor session: center {settings.map_center_lat:.5f}, "
        f"{settings.map_center_lng:.5f}, zoom {settings.map_zoom}, "
        f"canvas {settings.canvas_width}x{settings.canvas_height}"
    )
    logger.info(f"Exports written to {settings.export_dir}")

    logger.info("=" * 60)
    logger.info(f"  {settings.app_name} ONLINE")
    logger.info("=" * 60)

    yield

    app.state.editor = None
    logger.info(f"{settings.app_name} shutting down...")


# Create FastAPI app
app = FastAPI(
    title="GeoNexus Map Editor",
    description="Interactive map editing session service",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(editor_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": "0.1.0",
        "system": settings.app_name,
    }
