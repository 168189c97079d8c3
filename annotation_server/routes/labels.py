"""Label endpoints."""

from fastapi import APIRouter, Depends, status

from ..core.auth import Session
from ..core.repository import Repository
from ..models.request import LabelCreateRequest, LabelUpdateRequest
from .deps import get_repository, get_session

router = APIRouter(tags=["labels"])


@router.get("/labels")
def list_labels(
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.list_labels()


@router.post("/labels", status_code=status.HTTP_201_CREATED)
def create_label(
    request: LabelCreateRequest,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.create_label(session, request.name, request.color, request.projectId)


@router.put("/labels/{label_id}")
def update_label(
    label_id: str,
    request: LabelUpdateRequest,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.update_label(session, label_id, name=request.name, color=request.color)
