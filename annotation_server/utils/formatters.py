"""Format stored documents for API responses and COCO exports."""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..core.errors import ShapeError
from ..models.shapes import Polygon, Rectangle, Shape, shape_from_document

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


def format_label(label: Optional[Document]) -> Optional[Document]:
    """Public view of a label document."""
    if label is None:
        return None
    return {
        "id": label["id"],
        "name": label["name"],
        "color": label["color"],
        "projects": list(label.get("projects") or []),
    }


def format_annotation(annotation: Document, labels_by_id: Mapping[str, Document]) -> Document:
    """Annotation with its label populated and geometry in canonical form.

    Rectangles are returned with both ``bbox`` and ``x/y/width/height``;
    polygons with flat ``coordinates``. Geometry that cannot be read is
    passed through untouched so the editor can still list and delete it.

    Args:
        annotation: Stored annotation document
        labels_by_id: Label documents keyed by id

    Returns:
        dict: Annotation for the API
    """
    result = {
        "id": annotation["id"],
        "image_id": annotation.get("image_id"),
        "type": annotation.get("type"),
        "label": format_label(labels_by_id.get(annotation.get("label"))),
        "created_at": annotation.get("created_at"),
        "updated_at": annotation.get("updated_at"),
    }

    try:
        shape = shape_from_document(annotation)
    except ShapeError as e:
        logger.warning(f"Annotation {annotation['id']} has unreadable geometry: {e}")
        for key in ("bbox", "coordinates", "x", "y", "width", "height"):
            if key in annotation:
                result[key] = annotation[key]
        return result

    result.update(format_shape(shape))
    return result


def format_shape(shape: Shape) -> Document:
    """Geometry fields for a shape."""
    if isinstance(shape, Rectangle):
        x, y, width, height = shape.bbox
        return {"bbox": [x, y, width, height], "x": x, "y": y, "width": width, "height": height}
    if isinstance(shape, Polygon):
        return {"coordinates": shape.flat()}
    raise TypeError(f"Unsupported shape: {shape!r}")


def format_image(
    image: Document,
    annotations: Optional[List[Document]] = None,
) -> Document:
    """Image document for the API.

    Args:
        image: Stored image document
        annotations: Populated annotations; ids are kept when omitted

    Returns:
        dict: Image for the API
    """
    result = dict(image)
    if annotations is not None:
        result["annotations"] = annotations
    else:
        result["annotations"] = list(image.get("annotations") or [])
    return result


def format_project(
    project: Document,
    labels: Optional[List[Document]] = None,
) -> Document:
    """Project document with labels populated when given."""
    result = dict(project)
    if labels is not None:
        result["labels"] = [format_label(label) for label in labels]
    result["imagesCount"] = len(project.get("images") or [])
    return result


def format_coco_image(
    image: Document,
    coco_id: int,
    width: int,
    height: int,
) -> Document:
    """COCO ``images`` entry.

    Args:
        image: Stored image document
        coco_id: 1-based id within this export
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        dict: COCO image entry
    """
    return {
        "id": coco_id,
        "file_name": image.get("file_name"),
        "width": width,
        "height": height,
        "license": 0,
        "date_captured": image.get("created_at"),
    }


def format_coco_annotation(
    shape: Shape,
    coco_id: int,
    image_coco_id: int,
    category_id: int,
    polygon_area: str = "zero",
) -> Document:
    """COCO ``annotations`` entry for one shape.

    Args:
        shape: Rectangle or Polygon in image pixel space
        coco_id: 1-based id within this export
        image_coco_id: COCO id of the owning image
        category_id: Category id, 0 for uncategorized
        polygon_area: "zero" or "shoelace"

    Returns:
        dict: COCO annotation entry
    """
    if isinstance(shape, Rectangle):
        segmentation = [shape.ring()]
        bbox = shape.bbox
        area = shape.area
    elif isinstance(shape, Polygon):
        segmentation = [shape.flat()]
        bbox = shape.bbox
        area = shape.area if polygon_area == "shoelace" else 0
    else:
        raise TypeError(f"Unsupported shape: {shape!r}")

    return {
        "id": coco_id,
        "image_id": image_coco_id,
        "category_id": category_id,
        "segmentation": segmentation,
        "bbox": bbox,
        "area": area,
        "iscrowd": 0,
    }


def format_coco_category(label: Document, coco_id: int) -> Document:
    """COCO ``categories`` entry."""
    return {
        "id": coco_id,
        "name": label["name"],
        "supercategory": "none",
        "color": label.get("color"),
    }
