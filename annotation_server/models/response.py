"""Pydantic models for API response payloads."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="UP", description="Server status")


class SessionResponse(BaseModel):
    """Issued on login."""

    token: str = Field(..., description="Bearer token")
    email: str = Field(..., description="Account email")
    expires_at: str = Field(..., description="ISO-8601 expiry time")


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class ImagePage(BaseModel):
    """One page of a project's images."""

    images: List[Dict[str, Any]] = Field(default_factory=list)
    hasNextPage: bool = False
    nextSkip: Optional[int] = None
    total: int = 0


class LabelUsage(BaseModel):
    """Annotation count for one label."""

    id: str
    name: str
    color: str
    count: int = 0


class ProjectStatistics(BaseModel):
    """Per-project labeling progress."""

    totalImages: int = 0
    labeledImagesCount: int = 0
    unlabeledImagesCount: int = 0
    annotationsCount: int = 0
    uncategorizedCount: int = Field(default=0, description="Annotations without a label")
    labelUsage: List[LabelUsage] = Field(default_factory=list)


class VersionInfo(BaseModel):
    """Version information response."""

    version: str = Field(..., description="Server version")
    exporter: str = Field(..., description="Exporter type")
    exporter_version: str = Field(..., description="Exporter version")
    config: Optional[Dict[str, Any]] = Field(default=None, description="Configuration info")
