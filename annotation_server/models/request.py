"""Pydantic models for API request payloads."""

from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
HEX_COLOR_PATTERN = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"


class SignUpRequest(BaseModel):
    """Account creation payload."""

    email: str = Field(..., pattern=EMAIL_PATTERN, description="Account email")
    password: str = Field(..., description="Password")
    confirmPassword: str = Field(..., description="Password confirmation")


class LoginRequest(BaseModel):
    """Login payload."""

    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Password")


class ProjectCreateRequest(BaseModel):
    """New project payload. The caller becomes the owner."""

    name: str = Field(..., min_length=2, max_length=50, description="Project name")
    description: Optional[str] = Field(default=None, description="Free text description")
    labels: List[str] = Field(default_factory=list, description="Label ids, in display order")


class ProjectUpdateRequest(BaseModel):
    """Project edit payload; omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    description: Optional[str] = None
    labels: Optional[List[str]] = Field(default=None, description="Replacement label id list")


class AttachLabelsRequest(BaseModel):
    """Label ids to attach to a project."""

    labels: List[str] = Field(..., min_length=1, description="Label ids")


class LabelCreateRequest(BaseModel):
    """New label payload."""

    name: str = Field(..., min_length=2, max_length=50, description="Label name")
    color: str = Field(..., pattern=HEX_COLOR_PATTERN, description="Hex color, e.g. #FF6EC7")
    projectId: Optional[str] = Field(default=None, description="Project to attach the label to")


class LabelUpdateRequest(BaseModel):
    """Label edit payload."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


class MemberInviteRequest(BaseModel):
    """Add a member to a project."""

    email: str = Field(..., pattern=EMAIL_PATTERN, description="Member email")
    role: Literal["editor", "visitor"] = Field(default="visitor", description="Member role")


class MemberRoleUpdateRequest(BaseModel):
    """Change a member's role."""

    role: Literal["editor", "visitor"] = Field(..., description="New role")


class AnnotationPayload(BaseModel):
    """One annotation as sent by the editor.

    Example:
        {"type": "rectangle", "x": 10, "y": 20, "width": 30, "height": 40, "label": "<label id>"}
        {"type": "polygon", "coordinates": [5, 5, 50, 5, 50, 50, 5, 5]}
    """

    model_config = ConfigDict(extra="allow")

    type: Literal["rectangle", "polygon"] = Field(..., description="Shape type")
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    bbox: Optional[List[Optional[float]]] = Field(default=None, description="[x, y, width, height]")
    coordinates: Optional[List[Any]] = Field(default=None, description="Flat or nested polygon ring")
    label: Optional[Union[str, Dict[str, Any]]] = Field(
        default=None, description="Label id, or a label object carrying an id"
    )


class SaveAnnotationsRequest(BaseModel):
    """Batch of new annotations for one image."""

    annotations: List[AnnotationPayload] = Field(..., description="Annotations to create")


class LabelAssignRequest(BaseModel):
    """Assign (or clear, with null) an annotation's label."""

    labelId: Optional[str] = Field(default=None, description="Label id or null")
