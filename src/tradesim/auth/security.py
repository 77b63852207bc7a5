"""
Password hashing and session tokens.

Passwords are stored as salted PBKDF2 digests; sessions are HS256 JWTs
carrying the account id in a ``userId`` claim.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from tradesim.config.constants import (
    DEFAULT_TOKEN_TTL_DAYS,
    JWT_ALGORITHM,
    PASSWORD_HASH_ALGORITHM,
    PASSWORD_HASH_ITERATIONS,
    PASSWORD_SALT_BYTES,
)


class AuthError(Exception):
    """Base class for token verification failures."""

    status_code = 403

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class MissingTokenError(AuthError):
    """Request carried no bearer token."""

    status_code = 401

    def __init__(self) -> None:
        super().__init__("Access token required")


class TokenExpiredError(AuthError):
    """Token signature is valid but its expiry has passed."""

    status_code = 401

    def __init__(self) -> None:
        super().__init__("Token expired")


class InvalidTokenError(AuthError):
    """Token fails decoding or signature checks."""

    status_code = 403

    def __init__(self) -> None:
        super().__init__("Invalid token")


class PasswordHasher:
    """
    PBKDF2 password hashing.

    Encoded form: ``pbkdf2_<digest>$<iterations>$<salt hex>$<hash hex>``.
    """

    def __init__(
        self,
        iterations: int = PASSWORD_HASH_ITERATIONS,
        algorithm: str = PASSWORD_HASH_ALGORITHM,
        salt_bytes: int = PASSWORD_SALT_BYTES,
    ) -> None:
        self._iterations = iterations
        self._algorithm = algorithm
        self._salt_bytes = salt_bytes

    def hash(self, password: str) -> str:
        """Hash a password with a fresh random salt."""
        salt = secrets.token_bytes(self._salt_bytes)
        digest = self._derive(password, salt, self._iterations)
        return f"pbkdf2_{self._algorithm}${self._iterations}${salt.hex()}${digest.hex()}"

    def verify(self, password: str, encoded: str) -> bool:
        """
        Check a password against an encoded hash.

        Returns:
            False for a mismatch or an unparseable hash.
        """
        try:
            scheme, iterations, salt_hex, digest_hex = encoded.split("$")
            salt = bytes.fromhex(salt_hex)
            expected = bytes.fromhex(digest_hex)
            rounds = int(iterations)
        except ValueError:
            return False

        if scheme != f"pbkdf2_{self._algorithm}":
            return False

        return hmac.compare_digest(self._derive(password, salt, rounds), expected)

    def _derive(self, password: str, salt: bytes, iterations: int) -> bytes:
        return hashlib.pbkdf2_hmac(self._algorithm, password.encode(), salt, iterations)


class TokenService:
    """Issues and verifies session tokens."""

    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(days=DEFAULT_TOKEN_TTL_DAYS),
        algorithm: str = JWT_ALGORITHM,
    ) -> None:
        if not secret:
            raise ValueError("Token secret cannot be empty")
        self._secret = secret
        self._ttl = ttl
        self._algorithm = algorithm

    def issue(self, user_id: str, now: datetime | None = None) -> str:
        """
        Create a signed token for an account.

        Args:
            user_id: Account id stored in the ``userId`` claim.
            now: Issue time, defaults to the current UTC time.
        """
        issued_at = now or datetime.now(timezone.utc)
        claims: dict[str, Any] = {
            "userId": user_id,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> str:
        """
        Verify a token and return its account id.

        Raises:
            TokenExpiredError: Signature valid, expiry passed.
            InvalidTokenError: Anything else wrong with the token.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError() from e

        user_id = claims.get("userId")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidTokenError()
        return user_id

    @property
    def ttl(self) -> timedelta:
        return self._ttl
