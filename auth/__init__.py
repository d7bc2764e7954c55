"""
Session and credential management:
- Argon2 password (and refresh token) hashing      -> auth.passwords
- JWT access / refresh token encoding               -> auth.tokens
- issuance, single-use rotation and revocation      -> auth.service
- register / login / logout / refresh / authenticate -> auth.sessions
"""
from auth.errors import (
    AuthServiceError,
    AuthError,
    ConflictError,
    HashingError,
    InvalidToken,
    StorageError,
    UserNotFound,
)

__all__ = [
    "AuthServiceError",
    "AuthError",
    "ConflictError",
    "HashingError",
    "InvalidToken",
    "StorageError",
    "UserNotFound",
]
