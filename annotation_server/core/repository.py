"""Project, member, label, image and annotation operations.

Every public method takes the caller's ``Session`` and checks its project
role before touching the store. Roles:

    owner   - everything, including member management and project deletion
    editor  - edit project, upload/delete images, write annotations
    visitor - read only
"""

import logging
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.shapes import shape_from_document
from ..utils.formatters import format_annotation, format_image, format_label, format_project
from .auth import Session, normalize_email
from .errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from .media import MediaStore
from .store import DocumentStore, now_iso

logger = logging.getLogger(__name__)

Document = Dict[str, Any]

OWNER = "owner"
EDITOR = "editor"
VISITOR = "visitor"
INVITABLE_ROLES = (EDITOR, VISITOR)
WRITE_ROLES = (OWNER, EDITOR)

GEOMETRY_FIELDS = ("bbox", "coordinates", "x", "y", "width", "height")


class Repository:
    """Domain operations over the document store and uploaded media."""

    def __init__(self, store: DocumentStore, media: MediaStore, page_size: int = 50):
        """Initialize repository.

        Args:
            store: Document store
            media: Uploaded file storage
            page_size: Default number of images per page
        """
        self.store = store
        self.media = media
        self.page_size = page_size

    # ------------------------------------------------------------------
    # Access control
    # ------------------------------------------------------------------

    def load_project(self, project_id: str) -> Document:
        project = self.store.get("projects", project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    @staticmethod
    def role_of(project: Document, email: str) -> Optional[str]:
        """Role of ``email`` in ``project``, or None for non-members."""
        for member in project.get("members") or []:
            if member["email"] == email:
                return member["role"]
        return None

    def require_member(self, project: Document, session: Session) -> str:
        role = self.role_of(project, session.email)
        if role is None:
            raise PermissionDeniedError(f"Not a member of project {project['id']}")
        return role

    def require_editor(self, project: Document, session: Session) -> str:
        role = self.require_member(project, session)
        if role not in WRITE_ROLES:
            raise PermissionDeniedError(f"Role {role!r} cannot modify project {project['id']}")
        return role

    def require_owner(self, project: Document, session: Session) -> None:
        if self.role_of(project, session.email) != OWNER:
            raise PermissionDeniedError(f"Only the owner can do this on project {project['id']}")

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self, session: Session) -> List[Document]:
        """Projects the caller is a member of, oldest first."""
        projects = self.store.find(
            "projects", predicate=lambda p: self.role_of(p, session.email) is not None
        )
        return [format_project(p) for p in projects]

    def create_project(
        self,
        session: Session,
        name: str,
        description: Optional[str] = None,
        labels: Sequence[str] = (),
    ) -> Document:
        """Create a project owned by the caller.

        Raises:
            NotFoundError: A label id does not exist
        """
        label_ids = self._existing_label_ids(labels)
        project = self.store.insert(
            "projects",
            {
                "name": name,
                "description": description,
                "owner": session.email,
                "images": [],
                "labels": label_ids,
                "members": [{"email": session.email, "role": OWNER}],
                "created_at": now_iso(),
            },
        )
        for label_id in label_ids:
            self.store.add_to_set("labels", label_id, "projects", project["id"])

        logger.info(f"Project {project['id']} ({name}) created by {session.email}")
        return format_project(project, self.store.get_many("labels", label_ids))

    def get_project(self, session: Session, project_id: str) -> Document:
        """Project with its labels populated."""
        project = self.load_project(project_id)
        self.require_member(project, session)
        return format_project(project, self.store.get_many("labels", project["labels"]))

    def update_project(
        self,
        session: Session,
        project_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        labels: Optional[Sequence[str]] = None,
    ) -> Document:
        """Edit name, description and/or the label list."""
        project = self.load_project(project_id)
        self.require_editor(project, session)

        changes: Document = {}
        if name is not None:
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if labels is not None:
            label_ids = self._existing_label_ids(labels)
            for removed in set(project["labels"]) - set(label_ids):
                self.store.pull("labels", removed, "projects", project_id)
            for added in label_ids:
                self.store.add_to_set("labels", added, "projects", project_id)
            changes["labels"] = label_ids

        if changes:
            project = self.store.update("projects", project_id, changes)
            logger.info(f"Project {project_id} updated: {sorted(changes)}")
        return format_project(project, self.store.get_many("labels", project["labels"]))

    def delete_project(self, session: Session, project_id: str) -> None:
        """Delete a project with its images, annotations and stored files."""
        project = self.load_project(project_id)
        self.require_owner(project, session)

        images = self.store.find("images", project_id=project_id)
        for image in images:
            self._delete_image_documents(image)
        self.media.delete_project(project_id)

        for label_id in project["labels"]:
            self.store.pull("labels", label_id, "projects", project_id)
        self.store.delete("projects", project_id)
        logger.info(f"Project {project_id} deleted with {len(images)} images")

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def list_members(self, session: Session, project_id: str) -> List[Document]:
        project = self.load_project(project_id)
        self.require_member(project, session)
        return project["members"]

    def invite_member(self, session: Session, project_id: str, email: str, role: str) -> List[Document]:
        """Add a member with an invitable role.

        Raises:
            ValidationError: Role is not editor or visitor
            ConflictError: Email is already a member
        """
        project = self.load_project(project_id)
        self.require_owner(project, session)
        _check_invitable(role)

        email = normalize_email(email)
        if self.role_of(project, email) is not None:
            raise ConflictError(f"{email} is already a member of project {project_id}")

        members = project["members"] + [{"email": email, "role": role}]
        self.store.update("projects", project_id, {"members": members})
        logger.info(f"Invited {email} to project {project_id} as {role}")
        return members

    def update_member_role(self, session: Session, project_id: str, email: str, role: str) -> List[Document]:
        """Change a member's role between editor and visitor."""
        project = self.load_project(project_id)
        self.require_owner(project, session)
        _check_invitable(role)

        email = normalize_email(email)
        current = self.role_of(project, email)
        if current is None:
            raise NotFoundError("member", email)
        if current == OWNER:
            raise PermissionDeniedError("The project owner's role cannot be changed")

        members = [
            {"email": m["email"], "role": role if m["email"] == email else m["role"]}
            for m in project["members"]
        ]
        self.store.update("projects", project_id, {"members": members})
        return members

    def remove_member(self, session: Session, project_id: str, email: str) -> List[Document]:
        project = self.load_project(project_id)
        self.require_owner(project, session)

        email = normalize_email(email)
        current = self.role_of(project, email)
        if current is None:
            raise NotFoundError("member", email)
        if current == OWNER:
            raise PermissionDeniedError("The project owner cannot be removed")

        members = [m for m in project["members"] if m["email"] != email]
        self.store.update("projects", project_id, {"members": members})
        logger.info(f"Removed {email} from project {project_id}")
        return members

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def list_labels(self) -> List[Document]:
        return [format_label(label) for label in self.store.find("labels")]

    def create_label(
        self,
        session: Session,
        name: str,
        color: str,
        project_id: Optional[str] = None,
    ) -> Document:
        """Create a label, optionally attached to a project."""
        if project_id is not None:
            project = self.load_project(project_id)
            self.require_editor(project, session)

        label = self.store.insert(
            "labels",
            {
                "name": name,
                "color": color,
                "projects": [project_id] if project_id else [],
                "created_at": now_iso(),
            },
        )
        if project_id is not None:
            self.store.add_to_set("projects", project_id, "labels", label["id"])
        return format_label(label)

    def update_label(
        self,
        session: Session,
        label_id: str,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Document:
        """Rename or recolor a label.

        Labels attached to projects may only be changed by an owner or editor
        of one of those projects.
        """
        label = self._load_label(label_id)
        projects = self.store.get_many("projects", label.get("projects") or [])
        if projects and not any(self.role_of(p, session.email) in WRITE_ROLES for p in projects):
            raise PermissionDeniedError(f"Cannot modify label {label_id}")

        changes = {k: v for k, v in (("name", name), ("color", color)) if v is not None}
        if changes:
            label = self.store.update("labels", label_id, changes)
        return format_label(label)

    def project_labels(self, session: Session, project_id: str) -> List[Document]:
        """Labels of a project in project order."""
        project = self.load_project(project_id)
        self.require_member(project, session)
        return [format_label(label) for label in self.store.get_many("labels", project["labels"])]

    def attach_labels(self, session: Session, project_id: str, label_ids: Sequence[str]) -> List[Document]:
        """Append existing labels to a project's label list."""
        project = self.load_project(project_id)
        self.require_editor(project, session)

        for label_id in self._existing_label_ids(label_ids):
            self.store.add_to_set("projects", project_id, "labels", label_id)
            self.store.add_to_set("labels", label_id, "projects", project_id)
        return self.project_labels(session, project_id)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def upload_images(
        self,
        session: Session,
        project_id: str,
        uploads: Iterable[Tuple[str, BinaryIO]],
    ) -> List[Document]:
        """Store uploaded files and append them to the project.

        Args:
            session: Caller
            project_id: Target project
            uploads: (file name, binary stream) pairs

        Returns:
            list: Created image documents
        """
        project = self.load_project(project_id)
        self.require_editor(project, session)

        created = []
        for file_name, stream in uploads:
            stored = self.media.save_upload(project_id, file_name, stream)
            image = self.store.insert(
                "images",
                {
                    "project_id": project_id,
                    "file_name": stored.file_name,
                    "file_path": stored.file_path,
                    "lqip_path": stored.lqip_path,
                    "width": stored.width,
                    "height": stored.height,
                    "annotations": [],
                    "created_at": now_iso(),
                },
            )
            self.store.add_to_set("projects", project_id, "images", image["id"])
            created.append(format_image(image))

        logger.info(f"Uploaded {len(created)} images to project {project_id}")
        return created

    def list_images(
        self,
        session: Session,
        project_id: str,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> Document:
        """One page of images in project order.

        Returns:
            dict: ``{images, hasNextPage, nextSkip, total}``
        """
        limit = self.page_size if limit is None else limit
        if skip < 0 or limit < 1:
            raise ValidationError("skip must be >= 0 and limit >= 1")

        project = self.load_project(project_id)
        self.require_member(project, session)

        image_ids = project["images"]
        page_ids = image_ids[skip:skip + limit]
        has_next = skip + limit < len(image_ids)
        return {
            "images": [format_image(img) for img in self.store.get_many("images", page_ids)],
            "hasNextPage": has_next,
            "nextSkip": skip + limit if has_next else None,
            "total": len(image_ids),
        }

    def get_image(self, session: Session, image_id: str) -> Document:
        """Image with populated annotations, its project id and member list."""
        image, project = self._image_and_project(image_id)
        self.require_member(project, session)
        return {
            "image": format_image(image, self._populated_annotations(image)),
            "projectId": project["id"],
            "members": project["members"],
        }

    def image_file(self, session: Session, image_id: str, placeholder: bool = False):
        """Filesystem path of an image or its placeholder.

        Raises:
            NotFoundError: Image unknown or the file is gone
        """
        image, project = self._image_and_project(image_id)
        self.require_member(project, session)

        relative = image.get("lqip_path") if placeholder else image.get("file_path")
        path = self.media.resolve(relative)
        if path is None:
            raise NotFoundError("file", relative or image_id)
        return path

    def delete_image(self, session: Session, image_id: str) -> None:
        """Delete an image, its annotations and (when unshared) its files."""
        image, project = self._image_and_project(image_id)
        self.require_editor(project, session)

        self.store.pull("projects", project["id"], "images", image_id)
        self._delete_image_documents(image)

        shared = self.store.find(
            "images", project_id=project["id"], predicate=lambda i: i["file_path"] == image["file_path"]
        )
        if not shared:
            self.media.delete(image.get("file_path"))
            self.media.delete(image.get("lqip_path"))
        logger.info(f"Image {image_id} deleted from project {project['id']}")

    def statistics(self, session: Session, project_id: str) -> Document:
        """Labeled/unlabeled image counts and per-label annotation usage."""
        project = self.load_project(project_id)
        self.require_member(project, session)

        labels = self.store.get_many("labels", project["labels"])
        usage = {label["id"]: 0 for label in labels}
        labeled = 0
        annotations_count = 0
        uncategorized = 0

        for image in self.store.get_many("images", project["images"]):
            annotations = self.store.find("annotations", image_id=image["id"])
            if annotations:
                labeled += 1
            annotations_count += len(annotations)
            for annotation in annotations:
                label_id = annotation.get("label")
                if label_id in usage:
                    usage[label_id] += 1
                else:
                    uncategorized += 1

        total = len(project["images"])
        return {
            "totalImages": total,
            "labeledImagesCount": labeled,
            "unlabeledImagesCount": total - labeled,
            "annotationsCount": annotations_count,
            "uncategorizedCount": uncategorized,
            "labelUsage": [
                {"id": l["id"], "name": l["name"], "color": l["color"], "count": usage[l["id"]]}
                for l in labels
            ],
        }

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    def save_annotations(self, session: Session, image_id: str, payloads: Sequence[Document]) -> List[Document]:
        """Create a batch of annotations on an image.

        The whole batch is validated before anything is written.

        Returns:
            list: Every annotation of the image, labels populated
        """
        image, project = self._image_and_project(image_id)
        self.require_editor(project, session)

        prepared = []
        for payload in payloads:
            shape = shape_from_document(payload)
            label_id = _payload_label_id(payload)
            if label_id is not None:
                self._load_label(label_id)
            prepared.append((shape, label_id))

        now = now_iso()
        for shape, label_id in prepared:
            doc = shape.to_document()
            doc.update({"image_id": image_id, "label": label_id, "created_at": now, "updated_at": now})
            annotation = self.store.insert("annotations", doc)
            self.store.add_to_set("images", image_id, "annotations", annotation["id"])

        logger.info(f"Saved {len(prepared)} annotations on image {image_id}")
        return self._populated_annotations(self.store.get("images", image_id))

    def list_annotations(self, session: Session, image_id: str) -> List[Document]:
        image, project = self._image_and_project(image_id)
        self.require_member(project, session)
        return self._populated_annotations(image)

    def update_annotation(self, session: Session, annotation_id: str, payload: Document) -> Document:
        """Replace an annotation's geometry, and its label when the payload has one."""
        annotation, _ = self._annotation_for_write(session, annotation_id)

        shape = shape_from_document(payload)
        # stale fields of the previous geometry are cleared, readers branch on type
        changes = {field: None for field in GEOMETRY_FIELDS if field in annotation}
        changes.update(shape.to_document())
        if "label" in payload:
            label_id = _payload_label_id(payload)
            if label_id is not None:
                self._load_label(label_id)
            changes["label"] = label_id
        changes["updated_at"] = now_iso()

        updated = self.store.update("annotations", annotation_id, changes)
        return self._populate_one(updated)

    def set_annotation_label(self, session: Session, annotation_id: str, label_id: Optional[str]) -> Document:
        """Assign a label, or clear it with None."""
        self._annotation_for_write(session, annotation_id)
        if label_id is not None:
            self._load_label(label_id)

        updated = self.store.update(
            "annotations", annotation_id, {"label": label_id, "updated_at": now_iso()}
        )
        return self._populate_one(updated)

    def delete_annotation(self, session: Session, annotation_id: str) -> None:
        annotation, image = self._annotation_for_write(session, annotation_id)
        self.store.pull("images", image["id"], "annotations", annotation_id)
        self.store.delete("annotations", annotation_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _image_and_project(self, image_id: str) -> Tuple[Document, Document]:
        image = self.store.get("images", image_id)
        if image is None:
            raise NotFoundError("image", image_id)
        return image, self.load_project(image["project_id"])

    def _annotation_for_write(self, session: Session, annotation_id: str) -> Tuple[Document, Document]:
        annotation = self.store.get("annotations", annotation_id)
        if annotation is None:
            raise NotFoundError("annotation", annotation_id)
        image, project = self._image_and_project(annotation["image_id"])
        self.require_editor(project, session)
        return annotation, image

    def _load_label(self, label_id: str) -> Document:
        label = self.store.get("labels", label_id)
        if label is None:
            raise NotFoundError("label", label_id)
        return label

    def _existing_label_ids(self, label_ids: Sequence[str]) -> List[str]:
        """Deduplicated label ids in the given order, all verified to exist."""
        result = []
        for label_id in label_ids:
            self._load_label(label_id)
            if label_id not in result:
                result.append(label_id)
        return result

    def _populated_annotations(self, image: Document) -> List[Document]:
        annotations = self.store.get_many("annotations", image.get("annotations") or [])
        label_ids = {a.get("label") for a in annotations if a.get("label")}
        labels_by_id = {label["id"]: label for label in self.store.get_many("labels", label_ids)}
        return [format_annotation(a, labels_by_id) for a in annotations]

    def _populate_one(self, annotation: Document) -> Document:
        labels_by_id = {}
        if annotation.get("label"):
            label = self.store.get("labels", annotation["label"])
            if label is not None:
                labels_by_id[label["id"]] = label
        return format_annotation(annotation, labels_by_id)

    def _delete_image_documents(self, image: Document) -> None:
        for annotation in self.store.find("annotations", image_id=image["id"]):
            self.store.delete("annotations", annotation["id"])
        self.store.delete("images", image["id"])


def _check_invitable(role: str) -> None:
    if role not in INVITABLE_ROLES:
        raise ValidationError(f"Role must be one of {', '.join(INVITABLE_ROLES)}, got {role!r}")


def _payload_label_id(payload: Document) -> Optional[str]:
    label = payload.get("label")
    if isinstance(label, dict):
        label = label.get("id") or label.get("_id")
    if not label:
        return None
    if not isinstance(label, str):
        raise ValidationError(f"Invalid label id: {label!r}")
    return label

