"""Request dependencies: services from app state and the caller's session."""

from fastapi import Depends, Request

from ..core.auth import AuthService, Session
from ..core.repository import Repository
from ..exporters import BaseExporter


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_auth(request: Request) -> AuthService:
    return request.app.state.auth


def get_exporter(request: Request) -> BaseExporter:
    return request.app.state.exporter


def bearer_token(request: Request):
    """Token from ``Authorization: Bearer <token>``, or None."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_session(request: Request, auth: AuthService = Depends(get_auth)) -> Session:
    """Authenticated session of the caller; 401 otherwise."""
    return auth.authenticate(bearer_token(request))
