"""Annotation endpoints."""

from fastapi import APIRouter, Depends

from ..core.auth import Session
from ..core.repository import Repository
from ..models.request import AnnotationPayload, LabelAssignRequest, SaveAnnotationsRequest
from ..models.response import MessageResponse
from .deps import get_repository, get_session

router = APIRouter(tags=["annotations"])


@router.get("/image/{image_id}/annotations")
def list_annotations(
    image_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return {"annotations": repository.list_annotations(session, image_id)}


@router.post("/image/{image_id}/annotations")
def save_annotations(
    image_id: str,
    request: SaveAnnotationsRequest,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    """Create a batch of annotations.

    Returns every annotation of the image with labels populated.
    """
    payloads = [annotation.model_dump(exclude_none=True) for annotation in request.annotations]
    return {"annotations": repository.save_annotations(session, image_id, payloads)}


@router.put("/annotations/{annotation_id}")
def update_annotation(
    annotation_id: str,
    request: AnnotationPayload,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    """Replace an annotation's geometry (and label, when sent)."""
    payload = request.model_dump(exclude_unset=True)
    return {"annotation": repository.update_annotation(session, annotation_id, payload)}


@router.put("/annotations/{annotation_id}/label")
def set_annotation_label(
    annotation_id: str,
    request: LabelAssignRequest,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return {"annotation": repository.set_annotation_label(session, annotation_id, request.labelId)}


@router.delete("/annotations/{annotation_id}", response_model=MessageResponse)
def delete_annotation(
    annotation_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    repository.delete_annotation(session, annotation_id)
    return MessageResponse(message=f"Annotation {annotation_id} deleted")
