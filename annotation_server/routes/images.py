"""Image upload, listing, download and deletion endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import FileResponse

from ..core.auth import Session
from ..core.repository import Repository
from ..models.response import ImagePage, MessageResponse
from .deps import get_repository, get_session

router = APIRouter(tags=["images"])


@router.get("/projects/{project_id}/images", response_model=ImagePage)
def list_images(
    project_id: str,
    skip: int = Query(default=0, ge=0),
    limit: Optional[int] = Query(default=None, ge=1),
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    """One page of the project's images in project order."""
    return repository.list_images(session, project_id, skip=skip, limit=limit)


@router.post("/projects/{project_id}/images", status_code=status.HTTP_201_CREATED)
def upload_images(
    project_id: str,
    files: List[UploadFile] = File(..., description="Image files"),
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    """Upload images; dimensions and a placeholder are recorded for each."""
    images = repository.upload_images(
        session, project_id, [(upload.filename, upload.file) for upload in files]
    )
    return {"images": images}


@router.get("/image/{image_id}")
def get_image(
    image_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    """Image with annotations and labels populated, its project id and members."""
    return repository.get_image(session, image_id)


@router.get("/image/{image_id}/file")
def image_file(
    image_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return FileResponse(repository.image_file(session, image_id))


@router.get("/image/{image_id}/lqip")
def image_placeholder(
    image_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return FileResponse(repository.image_file(session, image_id, placeholder=True), media_type="image/jpeg")


@router.delete("/image/{image_id}", response_model=MessageResponse)
def delete_image(
    image_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    repository.delete_image(session, image_id)
    return MessageResponse(message=f"Image {image_id} deleted")
