"""Annotation editor core: drawing state, pan/zoom and server sync."""

from .client import AnnotationClient
from .config import EditorSettings, load_editor_settings
from .errors import ApiError, AuthExpiredError, EditorError, NotFoundError
from .session import SessionContext
from .state import AnnotationEditor, Mode
from .sync import AnnotationSync, Debouncer
from .viewport import Viewport

__all__ = [
    "AnnotationClient",
    "EditorSettings",
    "load_editor_settings",
    "ApiError",
    "AuthExpiredError",
    "EditorError",
    "NotFoundError",
    "SessionContext",
    "AnnotationEditor",
    "Mode",
    "AnnotationSync",
    "Debouncer",
    "Viewport",
]

__version__ = "0.1.0"
