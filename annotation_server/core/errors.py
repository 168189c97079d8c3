"""Error types raised by the annotation server."""

from fastapi import status


class AnnotationServerError(Exception):
    """Base exception for annotation server operations."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(AnnotationServerError):
    """Raised when a project, image, annotation, label or user is missing."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, kind: str, document_id: str) -> None:
        self.kind = kind
        self.document_id = document_id
        super().__init__(f"{kind.capitalize()} not found: {document_id}")


class ValidationError(AnnotationServerError):
    """Raised when input data is malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class ShapeError(ValidationError):
    """Raised when stored or submitted annotation geometry cannot be read."""


class PermissionDeniedError(AnnotationServerError):
    """Raised when the caller's project role does not allow the operation."""

    status_code = status.HTTP_403_FORBIDDEN


class AuthenticationError(AnnotationServerError):
    """Raised for missing, invalid or expired credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ConflictError(AnnotationServerError):
    """Raised when a unique constraint would be violated."""

    status_code = status.HTTP_409_CONFLICT
