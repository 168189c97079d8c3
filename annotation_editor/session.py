"""Explicit client-side session context."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SessionContext:
    """Who is signed in, created at login and dropped at logout or expiry."""

    token: str
    email: str
    expires_at: datetime

    @classmethod
    def from_login(cls, payload: Dict[str, Any]) -> "SessionContext":
        """Build from a ``POST /login`` response body."""
        expires_at = datetime.fromisoformat(payload["expires_at"])
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(token=payload["token"], email=payload["email"], expires_at=expires_at)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def authorization(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}
