"""Error types raised by the editor client."""

from typing import Optional


class EditorError(Exception):
    """Base exception for editor operations."""


class ApiError(EditorError):
    """Non-success response, or no response at all (``status_code`` None)."""

    def __init__(self, status_code: Optional[int], message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{status_code}] {message}" if status_code else message)


class NotFoundError(ApiError):
    """The project, image, annotation or label no longer exists."""


class AuthExpiredError(ApiError):
    """The session is missing, invalid or expired; the user must sign in again."""
