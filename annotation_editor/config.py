"""Editor settings."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class EditorSettings(BaseModel):
    """Interaction and persistence settings for the annotation editor."""

    base_url: str = Field(default="http://localhost:3001", description="Annotation server URL")
    request_timeout: float = Field(default=10.0, description="HTTP timeout in seconds")
    debounce_ms: int = Field(default=500, ge=0, description="Save batching window")
    close_radius: float = Field(
        default=10.0, gt=0, description="Polygon closing distance in screen pixels"
    )
    zoom_step: float = Field(default=1.1, gt=1.0, description="Scale factor per wheel notch")
    min_scale: float = Field(default=0.05, gt=0, description="Smallest zoom")
    max_scale: float = Field(default=40.0, gt=0, description="Largest zoom")
    fit_zoom_factor: float = Field(default=0.8, gt=0, description="Initial fit scale multiplier")
    sidebar_width: int = Field(default=300, ge=0, description="Screen width taken by the sidebar")


def load_editor_settings(config_path: Optional[Path] = None) -> EditorSettings:
    """Load editor settings from a YAML file.

    The file may hold the settings at top level or under an ``editor`` key.

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    if config_path is None:
        return EditorSettings()

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    return EditorSettings(**data.get("editor", data))
