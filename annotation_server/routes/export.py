"""COCO export download endpoint."""

import json

from fastapi import APIRouter, Depends, Response

from ..core.auth import Session
from ..core.repository import Repository
from ..exporters import BaseExporter
from .deps import get_exporter, get_repository, get_session

router = APIRouter(tags=["export"])

WARNINGS_HEADER = "X-Export-Warnings"


def export_filename(project_id: str) -> str:
    return f"project_{project_id}_COCO.json"


@router.get("/projects/{project_id}/export")
def export_project(
    project_id: str,
    session: Session = Depends(get_session),
    repository: Repository = Depends(get_repository),
    exporter: BaseExporter = Depends(get_exporter),
):
    """Download the project as a COCO JSON attachment.

    The ``X-Export-Warnings`` header carries the number of lossy
    substitutions and skipped annotations.
    """
    repository.require_member(repository.load_project(project_id), session)
    result = exporter.export(project_id)

    return Response(
        content=json.dumps(result.document, indent=2),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(project_id)}"',
            WARNINGS_HEADER: str(len(result.warnings)),
        },
    )
