"""JWT authentication handler."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, cast

import bcrypt
from jose import jwt, JWTError

from shipnorth.config import AuthSettings
from shipnorth.domain.models.user import Portal, Role, User


class JWTHandler:
    """Handles JWT token creation and validation."""

    def __init__(self, settings: AuthSettings) -> None:
        self._settings = settings

    def create_access_token(self, user: User, extra: dict[str, Any] | None = None) -> str:
        """Create a JWT access token carrying the user's role claims."""
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=self._settings.access_token_expire_minutes
        )
        payload: dict[str, Any] = {
            "sub": user.id,
            "email": user.email,
            "roles": sorted(r.value for r in user.roles),
            "customer_id": user.customer_id,
            "last_used_portal": user.last_used_portal.value if user.last_used_portal else None,
            "exp": expire,
            "type": "access",
        }
        if extra:
            payload.update(extra)
        return self._encode(payload)

    def create_refresh_token(self, subject: str) -> str:
        """Create a JWT refresh token."""
        expire = datetime.now(timezone.utc) + timedelta(
            days=self._settings.refresh_token_expire_days
        )
        return self._encode({"sub": subject, "exp": expire, "type": "refresh"})

    def decode_token(self, token: str) -> dict[str, Any]:
        """Decode and validate a JWT token."""
        try:
            payload = jwt.decode(
                token, self._settings.secret_key, algorithms=[self._settings.algorithm]
            )
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e
        else:
            return cast(dict[str, Any], payload)

    @staticmethod
    def user_from_claims(payload: dict[str, Any]) -> User:
        """Rebuild the session user from access token claims."""
        try:
            roles = {Role(r) for r in payload.get("roles", [])}
            portal = payload.get("last_used_portal")
            return User(
                id=payload["sub"],
                email=payload.get("email", ""),
                roles=roles,
                customer_id=payload.get("customer_id"),
                last_used_portal=Portal(portal) if portal else None,
            )
        except (KeyError, ValueError) as e:
            raise InvalidTokenError(f"Malformed token claims: {e}") from e

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt directly."""
        password_bytes = password.encode("utf-8")
        salt = bcrypt.gensalt()
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        if not hashed_password:
            return False
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )

    def _encode(self, payload: dict[str, Any]) -> str:
        encoded: str = cast(
            str,
            jwt.encode(payload, self._settings.secret_key, algorithm=self._settings.algorithm),
        )
        return encoded


class InvalidTokenError(Exception):
    """Raised when a JWT token is invalid."""
