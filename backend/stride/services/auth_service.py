"""Password hashing, opaque token hashing and session-bound JWTs."""

import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta
from functools import cache

import bcrypt
import jwt

from stride.config import settings

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "sid", "exp", "type"]


@cache
def _dummy_hash() -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(b"stride-unknown-account", salt).decode("utf-8")


class AuthService:
    """Stateless credential helpers shared by sign-in and two-factor flows."""

    @staticmethod
    def get_dummy_hash() -> str:
        """A real bcrypt hash to check against when the account does not exist.

        Keeps the unknown-email path as slow as a wrong password.
        """
        return _dummy_hash()

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(rounds=settings.bcrypt_rounds)
        ).decode("utf-8")

    @staticmethod
    def verify_password(password: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            logger.error("Stored password hash is malformed")
            return False

    @staticmethod
    def hash_token(token: str) -> str:
        """SHA-256 hex digest, used for single-use challenge tokens."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def verify_token_hash(token: str, hashed: str) -> bool:
        return secrets.compare_digest(AuthService.hash_token(token), hashed)

    @staticmethod
    def new_session_id() -> str:
        return secrets.token_urlsafe(32)

    @staticmethod
    def create_access_token(
        user_id: str,
        session_id: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Sign an access token whose ``sid`` claim names the sign-in session."""
        issued_at = datetime.now(UTC)
        lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
        claims = {
            "sub": user_id,
            "sid": session_id,
            "type": "access",
            "iat": issued_at,
            "exp": issued_at + lifetime,
        }
        return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    @staticmethod
    def decode_access_token(token: str) -> dict | None:
        """Return the claims of a valid, unexpired token, else None."""
        try:
            return jwt.decode(
                token,
                settings.jwt_secret_key,
                algorithms=[settings.jwt_algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired access token")
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected access token: {e}")
        return None
