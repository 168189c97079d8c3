"""Abstract base class for dataset exporters."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..core.config import ExportSettings
from ..core.store import DocumentStore


@dataclass
class ExportResult:
    """An exported document plus the problems met while building it."""

    document: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)


class BaseExporter(ABC):
    """Abstract base class for exporters.

    All exporter implementations must inherit from this class and implement
    the abstract methods.
    """

    def __init__(self, store: DocumentStore, settings: ExportSettings):
        """Initialize exporter.

        Args:
            store: Document store to read the project graph from
            settings: Export settings
        """
        self.store = store
        self.settings = settings

    @abstractmethod
    def export(self, project_id: str) -> ExportResult:
        """Export one project.

        Args:
            project_id: Project to export

        Returns:
            ExportResult: Exported document and warnings
        """
        pass

    @abstractmethod
    def get_version(self) -> str:
        """Get exporter version string."""
        pass

    @abstractmethod
    def get_info(self) -> Dict[str, Any]:
        """Get exporter information and metadata.

        Returns:
            dict: Exporter metadata (type, version, settings)
        """
        pass
