"""Configuration loading and validation."""

import os
import yaml
from pathlib import Path
from typing import List, Literal
from pydantic import BaseModel, Field


CONFIG_ENV_VAR = "ANNOTATION_SERVER_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"


class ServerSettings(BaseModel):
    """Server configuration settings."""

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3001, description="Server port")
    version: str = Field(default="0.1.0", description="Server version")
    log_level: str = Field(default="INFO", description="Root logging level")


class StorageSettings(BaseModel):
    """Document store and upload locations."""

    data_dir: str = Field(default="data/documents", description="Document store directory")
    uploads_dir: str = Field(default="data/uploads", description="Uploaded image directory")
    persist: bool = Field(default=True, description="Write documents to disk")


class AuthSettings(BaseModel):
    """Session settings."""

    session_ttl_minutes: int = Field(default=24 * 60, description="Session lifetime in minutes")
    password_min_length: int = Field(default=6, description="Minimum password length")
    hash_iterations: int = Field(default=100_000, description="PBKDF2 iterations")


class ExportSettings(BaseModel):
    """COCO export settings."""

    default_width: int = Field(default=640, description="Width used when an image has none stored")
    default_height: int = Field(default=480, description="Height used when an image has none stored")
    polygon_area: Literal["zero", "shoelace"] = Field(
        default="zero", description="Polygon area mode"
    )
    version: str = Field(default="1.0", description="COCO info.version")
    contributor: str = Field(default="", description="COCO info.contributor (defaults to project owner)")


class UploadSettings(BaseModel):
    """Image upload settings."""

    allowed_extensions: List[str] = Field(
        default_factory=lambda: [".jpg", ".jpeg", ".png", ".webp", ".bmp"],
        description="Accepted file extensions",
    )
    lqip_width: int = Field(default=20, description="Placeholder width in pixels")
    lqip_blur_radius: float = Field(default=2.0, description="Placeholder blur radius")
    page_size: int = Field(default=50, description="Default image page size")


class CorsSettings(BaseModel):
    """CORS settings."""

    allow_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"], description="Allowed origins"
    )


class ServerConfig(BaseModel):
    """Complete server configuration."""

    server: ServerSettings = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)
    cors: CorsSettings = Field(default_factory=CorsSettings)


def load_config(config_path: Path) -> ServerConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to config.yaml file

    Returns:
        ServerConfig: Validated configuration object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValidationError: If config doesn't match schema
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    return ServerConfig(**config_data)


def get_default_config() -> ServerConfig:
    """Get default configuration.

    Returns:
        ServerConfig: Default configuration
    """
    return ServerConfig()


def resolve_config_path() -> Path:
    """Config path from the environment, falling back to the packaged config.yaml."""
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))
