"""Tests for password hashing and sessions."""

from datetime import timedelta

import pytest

from annotation_server.core.auth import AuthService, utcnow
from annotation_server.core.config import AuthSettings
from annotation_server.core.errors import AuthenticationError, ConflictError, ValidationError
from annotation_server.utils.hashing import hash_password, hash_string, new_token, verify_password
from conftest import PASSWORD


class TestPasswordHashing:
    """Tests for PBKDF2 helpers"""

    def test_round_trip(self):
        digest, salt = hash_password("hunter22", iterations=1000)

        assert verify_password("hunter22", digest, salt, iterations=1000)
        assert not verify_password("hunter23", digest, salt, iterations=1000)

    def test_salt_varies(self):
        assert hash_password("same", iterations=1000)[0] != hash_password("same", iterations=1000)[0]

    def test_fixed_salt_is_deterministic(self):
        assert hash_password("same", "00ff", 1000) == hash_password("same", "00ff", 1000)

    def test_tokens_are_unique(self):
        assert new_token() != new_token()
        assert len(hash_string("token")) == 64


class TestAuthService:
    """Tests for sign-up, login and token validation"""

    def test_sign_up_normalizes_email(self, auth, store):
        user = auth.sign_up("  Someone@Example.COM ", PASSWORD, PASSWORD)

        assert user["email"] == "someone@example.com"
        stored = store.get("users", user["id"])
        assert PASSWORD not in stored.values()

    def test_password_mismatch(self, auth):
        with pytest.raises(ValidationError, match="match"):
            auth.sign_up("a@example.com", PASSWORD, PASSWORD + "x")

    def test_short_password(self, auth):
        with pytest.raises(ValidationError, match="at least 6"):
            auth.sign_up("a@example.com", "12345", "12345")

    def test_duplicate_account(self, auth):
        auth.sign_up("a@example.com", PASSWORD, PASSWORD)

        with pytest.raises(ConflictError):
            auth.sign_up("A@example.com", PASSWORD, PASSWORD)

    def test_login_and_authenticate(self, auth, session):
        assert session.token
        resolved = auth.authenticate(session.token)

        assert resolved.email == "owner@example.com"
        assert resolved.session_id == session.session_id
        assert resolved.token is None

    def test_token_stored_hashed(self, store, session):
        doc = store.get("sessions", session.session_id)

        assert doc["token_hash"] == hash_string(session.token)
        assert session.token not in doc.values()

    def test_wrong_password(self, auth, session):
        with pytest.raises(AuthenticationError):
            auth.login("owner@example.com", "wrong-password")

    def test_unknown_email(self, auth):
        with pytest.raises(AuthenticationError):
            auth.login("nobody@example.com", PASSWORD)

    @pytest.mark.parametrize("token", [None, "", "not-a-token"])
    def test_invalid_tokens(self, auth, token):
        with pytest.raises(AuthenticationError):
            auth.authenticate(token)

    def test_logout(self, auth, session):
        auth.logout(session)

        with pytest.raises(AuthenticationError):
            auth.authenticate(session.token)

    def test_expired_session_removed(self, store):
        service = AuthService(store, AuthSettings(hash_iterations=1000, session_ttl_minutes=0))
        service.sign_up("a@example.com", PASSWORD, PASSWORD)
        session = service.login("a@example.com", PASSWORD)

        with pytest.raises(AuthenticationError, match="expired"):
            service.authenticate(session.token)
        assert store.get("sessions", session.session_id) is None

    def test_is_expired(self, session):
        assert not session.is_expired()
        assert session.is_expired(utcnow() + timedelta(days=2))
