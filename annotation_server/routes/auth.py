"""Account and session endpoints."""

from fastapi import APIRouter, Depends, status

from ..core.auth import AuthService, Session
from ..models.request import LoginRequest, SignUpRequest
from ..models.response import MessageResponse, SessionResponse
from .deps import get_auth, get_session

router = APIRouter(tags=["auth"])


@router.post("/signUp", status_code=status.HTTP_201_CREATED)
def sign_up(request: SignUpRequest, auth: AuthService = Depends(get_auth)):
    """Create an account."""
    user = auth.sign_up(request.email, request.password, request.confirmPassword)
    return {"message": "Account created", "user": user}


@router.post("/login", response_model=SessionResponse)
def login(request: LoginRequest, auth: AuthService = Depends(get_auth)):
    """Open a session and return its bearer token."""
    session = auth.login(request.email, request.password)
    return SessionResponse(
        token=session.token,
        email=session.email,
        expires_at=session.expires_at.isoformat(),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(session: Session = Depends(get_session), auth: AuthService = Depends(get_auth)):
    auth.logout(session)
    return MessageResponse(message="Logged out")
