"""Authentication: password hashing and session tokens."""

from tradesim.auth.security import (
    AuthError,
    InvalidTokenError,
    MissingTokenError,
    PasswordHasher,
    TokenExpiredError,
    TokenService,
)


__all__ = [
    "AuthError",
    "InvalidTokenError",
    "MissingTokenError",
    "PasswordHasher",
    "TokenExpiredError",
    "TokenService",
]
