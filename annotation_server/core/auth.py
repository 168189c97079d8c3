"""Accounts and bearer-token sessions."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..utils.hashing import hash_password, hash_string, new_token, verify_password
from .config import AuthSettings
from .errors import AuthenticationError, ConflictError, ValidationError
from .store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """An authenticated caller.

    Created at login, destroyed at logout or expiry. Passed explicitly to
    whatever needs to know who is calling.
    """

    session_id: str
    email: str
    expires_at: datetime
    token: Optional[str] = None  # only known right after login

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at


class AuthService:
    """Sign-up, login and token validation against the document store."""

    def __init__(self, store: DocumentStore, settings: AuthSettings):
        self.store = store
        self.settings = settings

    def sign_up(self, email: str, password: str, confirm_password: str) -> dict:
        """Create an account.

        Raises:
            ValidationError: Password too short or confirmation mismatch
            ConflictError: Email already registered
        """
        email = normalize_email(email)
        if password != confirm_password:
            raise ValidationError("Passwords must match")
        if len(password) < self.settings.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.settings.password_min_length} characters"
            )
        if self.store.find_one("users", email=email) is not None:
            raise ConflictError(f"Account already exists: {email}")

        password_hash, salt = hash_password(password, iterations=self.settings.hash_iterations)
        user = self.store.insert(
            "users",
            {
                "email": email,
                "password_hash": password_hash,
                "salt": salt,
                "created_at": utcnow().isoformat(),
            },
        )
        logger.info(f"Created account {email}")
        return {"id": user["id"], "email": email}

    def login(self, email: str, password: str) -> Session:
        """Check credentials and open a session.

        Raises:
            AuthenticationError: Unknown email or wrong password
        """
        email = normalize_email(email)
        user = self.store.find_one("users", email=email)
        if user is None or not verify_password(
            password, user["password_hash"], user["salt"], self.settings.hash_iterations
        ):
            raise AuthenticationError("Invalid email or password")

        token = new_token()
        now = utcnow()
        expires_at = now + timedelta(minutes=self.settings.session_ttl_minutes)
        doc = self.store.insert(
            "sessions",
            {
                "email": email,
                "token_hash": hash_string(token),
                "created_at": now.isoformat(),
                "expires_at": expires_at.isoformat(),
            },
        )
        logger.info(f"Session opened for {email}")
        return Session(session_id=doc["id"], email=email, expires_at=expires_at, token=token)

    def authenticate(self, token: Optional[str]) -> Session:
        """Resolve a bearer token to its session.

        Raises:
            AuthenticationError: Missing, unknown or expired token
        """
        if not token:
            raise AuthenticationError("Missing bearer token")

        doc = self.store.find_one("sessions", token_hash=hash_string(token))
        if doc is None:
            raise AuthenticationError("Invalid session token")

        session = Session(
            session_id=doc["id"],
            email=doc["email"],
            expires_at=datetime.fromisoformat(doc["expires_at"]),
        )
        if session.is_expired():
            self.store.delete("sessions", doc["id"])
            raise AuthenticationError("Session expired")
        return session

    def logout(self, session: Session) -> None:
        """Destroy a session."""
        self.store.delete("sessions", session.session_id)
        logger.info(f"Session closed for {session.email}")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
