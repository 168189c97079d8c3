"""COCO JSON exporter."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.errors import NotFoundError, ShapeError
from ..models.shapes import shape_from_document
from ..utils.formatters import format_coco_annotation, format_coco_category, format_coco_image
from .base import BaseExporter, ExportResult

logger = logging.getLogger(__name__)


class CocoExporter(BaseExporter):
    """Reshape a project's images, labels and annotations into COCO JSON.

    Ids in the output are counters local to one call:

        - categories are numbered 1..M in project label order
        - images are numbered 1..N in project image order
        - annotations are numbered in image order, then annotation order

    Category 0 means uncategorized. Nothing is cached between calls.
    """

    VERSION = "1.0.0"

    def export(self, project_id: str) -> ExportResult:
        """Build the COCO document for a project.

        Raises:
            NotFoundError: Project does not exist
        """
        project = self.store.get("projects", project_id)
        if project is None:
            raise NotFoundError("project", project_id)

        warnings: List[str] = []
        categories, category_ids = self._categories(project, warnings)

        images = []
        annotations = []
        for image in self.store.get_many("images", project.get("images") or []):
            image_coco_id = len(images) + 1
            width, height = self._dimensions(image, warnings)
            images.append(format_coco_image(image, image_coco_id, width, height))

            for annotation in self.store.get_many("annotations", image.get("annotations") or []):
                try:
                    shape = shape_from_document(annotation)
                    category_id = category_ids.get(_label_id(annotation), 0)
                    entry = format_coco_annotation(
                        shape,
                        coco_id=len(annotations) + 1,
                        image_coco_id=image_coco_id,
                        category_id=category_id,
                        polygon_area=self.settings.polygon_area,
                    )
                except (ShapeError, TypeError, ValueError, KeyError) as e:
                    reason = e.message if isinstance(e, ShapeError) else str(e)
                    message = f"Skipped annotation {annotation.get('id')} on image {image['id']}: {reason}"
                    logger.warning(message)
                    warnings.append(message)
                    continue
                annotations.append(entry)

        document = {
            "info": self._info(project),
            "licenses": [{"id": 0, "name": "Unknown", "url": ""}],
            "images": images,
            "annotations": annotations,
            "categories": categories,
        }
        logger.info(
            f"Exported project {project_id}: {len(images)} images, "
            f"{len(annotations)} annotations, {len(categories)} categories, {len(warnings)} warnings"
        )
        return ExportResult(document=document, warnings=warnings)

    def get_version(self) -> str:
        return self.VERSION

    def get_info(self) -> Dict[str, Any]:
        return {
            "type": "coco",
            "version": self.get_version(),
            "settings": self.settings.model_dump(),
        }

    def _categories(self, project: Dict[str, Any], warnings: List[str]):
        """Category entries and the label id -> category id map."""
        categories = []
        category_ids: Dict[str, int] = {}
        for label_id in project.get("labels") or []:
            if label_id in category_ids:
                continue
            label = self.store.get("labels", label_id)
            if label is None:
                message = f"Skipped missing label {label_id}"
                logger.warning(message)
                warnings.append(message)
                continue
            category_ids[label_id] = len(categories) + 1
            categories.append(format_coco_category(label, category_ids[label_id]))
        return categories, category_ids

    def _dimensions(self, image: Dict[str, Any], warnings: List[str]):
        width = image.get("width")
        height = image.get("height")
        if width and height:
            return width, height

        width = width or self.settings.default_width
        height = height or self.settings.default_height
        message = f"Image {image['id']} ({image.get('file_name')}) has no stored size, using {width}x{height}"
        logger.warning(message)
        warnings.append(message)
        return width, height

    def _info(self, project: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "description": project.get("name"),
            "version": self.settings.version,
            "year": datetime.now(timezone.utc).year,
            "contributor": self.settings.contributor or project.get("owner", ""),
            "date_created": datetime.now(timezone.utc).isoformat(),
        }


def _label_id(annotation: Dict[str, Any]) -> Optional[str]:
    """Label id of a stored annotation, whether kept as an id or an embedded label."""
    label = annotation.get("label")
    if isinstance(label, dict):
        label = label.get("id") or label.get("_id")
    return label if isinstance(label, str) else None
