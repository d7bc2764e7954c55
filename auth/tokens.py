"""
JWT helpers (PyJWT):
- access tokens carry the username and a short expiry
- refresh tokens carry the username, a random token_id, and a long expiry
- each kind is signed with its own secret and tagged with a "type" claim
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict

import jwt

from auth.errors import InvalidToken

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def generate_jti() -> str:
    """Generate a unique JWT ID."""
    return str(uuid.uuid4())


def encode_token(
    claims: Dict[str, Any],
    *,
    token_type: str,
    secret: str,
    algorithm: str,
    issued_at: datetime,
    expires_in: timedelta,
) -> str:
    payload = {
        **claims,
        "type": token_type,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + expires_in).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(
    token: str,
    *,
    expected_type: str,
    secret: str,
    algorithm: str,
    now: datetime,
) -> Dict[str, Any]:
    """
    Decode and validate a JWT. Raises InvalidToken on a bad signature, an
    elapsed expiry, a missing username or a token of the wrong kind.
    exp and iat are checked against `now` (the caller's clock), not the wall
    clock PyJWT would use. The reason is kept on the exception message for
    logging only.
    """
    if not token or not isinstance(token, str):
        raise InvalidToken("Token missing")
    try:
        decoded = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["exp", "iat"], "verify_exp": False, "verify_iat": False},
        )
    except jwt.InvalidTokenError as exc:
        raise InvalidToken(f"Invalid token: {exc}") from exc

    try:
        expires_at = int(decoded["exp"])
        issued_at = int(decoded["iat"])
    except (TypeError, ValueError) as exc:
        raise InvalidToken("Invalid token: exp/iat must be integers") from exc
    # same comparisons PyJWT makes, with zero leeway
    if expires_at <= now.timestamp():
        raise InvalidToken("Token expired")
    if issued_at > now.timestamp():
        raise InvalidToken("Token not yet valid")

    if decoded.get("type") != expected_type:
        raise InvalidToken("Wrong token type")
    if not isinstance(decoded.get("username"), str):
        raise InvalidToken("Token has no subject")
    return decoded
