"""Pydantic models for API requests and responses, plus annotation shapes."""

from .request import (
    AnnotationPayload,
    SaveAnnotationsRequest,
    ProjectCreateRequest,
    LabelCreateRequest,
)
from .response import HealthResponse, ImagePage, ProjectStatistics
from .shapes import Polygon, Rectangle, Shape, shape_from_document

__all__ = [
    "AnnotationPayload",
    "SaveAnnotationsRequest",
    "ProjectCreateRequest",
    "LabelCreateRequest",
    "HealthResponse",
    "ImagePage",
    "ProjectStatistics",
    "Polygon",
    "Rectangle",
    "Shape",
    "shape_from_document",
]
