"""Project, member, project label and statistics endpoints."""

from fastapi import APIRouter, Depends, status

from ..core.auth import Session
from ..core.repository import Repository
from ..models.request import (
    AttachLabelsRequest,
    MemberInviteRequest,
    MemberRoleUpdateRequest,
    ProjectCreateRequest,
    ProjectUpdateRequest,
)
from ..models.response import MessageResponse, ProjectStatistics
from .deps import get_repository, get_session

router = APIRouter(tags=["projects"])


@router.get("/projects")
def list_projects(
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    """Projects the caller is a member of."""
    return repository.list_projects(session)


@router.post("/projects", status_code=status.HTTP_201_CREATED)
def create_project(
    request: ProjectCreateRequest,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.create_project(session, request.name, request.description, request.labels)


@router.get("/project/{project_id}")
def get_project(
    project_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.get_project(session, project_id)


@router.put("/projects/{project_id}")
def update_project(
    project_id: str,
    request: ProjectUpdateRequest,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.update_project(
        session, project_id, name=request.name, description=request.description, labels=request.labels
    )


@router.delete("/projects/{project_id}", response_model=MessageResponse)
def delete_project(
    project_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    """Delete a project and everything in it. Owner only."""
    repository.delete_project(session, project_id)
    return MessageResponse(message=f"Project {project_id} deleted")


@router.get("/projects/{project_id}/statistics", response_model=ProjectStatistics)
def project_statistics(
    project_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.statistics(session, project_id)


@router.get("/projects/{project_id}/labels")
def project_labels(
    project_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.project_labels(session, project_id)


@router.post("/projects/{project_id}/labels")
def attach_labels(
    project_id: str,
    request: AttachLabelsRequest,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    """Attach existing labels to the project."""
    return repository.attach_labels(session, project_id, request.labels)


@router.get("/projects/{project_id}/members")
def list_members(
    project_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.list_members(session, project_id)


@router.post("/projects/{project_id}/members", status_code=status.HTTP_201_CREATED)
def invite_member(
    project_id: str,
    request: MemberInviteRequest,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    """Add a member. No invitation email is sent."""
    return repository.invite_member(session, project_id, request.email, request.role)


@router.put("/projects/{project_id}/members/{email}")
def update_member_role(
    project_id: str,
    email: str,
    request: MemberRoleUpdateRequest,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.update_member_role(session, project_id, email, request.role)


@router.delete("/projects/{project_id}/members/{email}")
def remove_member(
    project_id: str,
    email: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
):
    return repository.remove_member(session, project_id, email)
