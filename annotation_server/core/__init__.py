"""Core functionality for the annotation server."""

from .auth import AuthService, Session
from .config import ServerConfig, get_default_config, load_config
from .media import MediaStore
from .store import DocumentStore

__all__ = [
    "AuthService",
    "Session",
    "ServerConfig",
    "get_default_config",
    "load_config",
    "MediaStore",
    "DocumentStore",
]
