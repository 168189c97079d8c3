"""Dataset exporter implementations."""

from .base import BaseExporter, ExportResult
from .coco import CocoExporter

__all__ = ["BaseExporter", "CocoExporter", "ExportResult"]
