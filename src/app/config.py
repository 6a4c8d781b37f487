"""Configuration management using Pydantic settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "GeoNexus Map Editor"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Initial map view
    map_center_lat: float = 48.8566
    map_center_lng: float = 2.3522
    map_zoom: float = 13

    # Headless canvas (CSS pixels)
    canvas_width: int = 1024
    canvas_height: int = 768

    # Base map
    base_tile_url: str = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"

    # Print frame and export
    print_page_ratio: float = 1.414          # A4 landscape
    print_box_height_fraction: float = 0.6   # of the canvas height
    export_capture_scale: float = 3.0
    export_settle_seconds: float = 0.5
    export_dir: Path = Path("./data/exports")
    export_title: str = "GeoNexus Map Export"


settings = Settings()
