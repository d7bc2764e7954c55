"""
Token issuer and rotator.

Lifecycle of one refresh token value: ISSUED -> ROTATED | REVOKED | EXPIRED.
Rotated and revoked values are dead; the session continues under the new
token minted by the rotation.

Stored records only hold an Argon2 hash of the raw token. The hash is
salted, so a presented token is matched by verifying it against each active
record of its user in turn.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Callable, Iterable, Optional

from auth.errors import InvalidToken, UserNotFound
from auth.passwords import PasswordVerifier
from auth.tokens import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    decode_token,
    encode_token,
    generate_jti,
)
from models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_EXPIRES = timedelta(minutes=15)
DEFAULT_REFRESH_EXPIRES = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_at: datetime


class TokenService:
    """
    Mints access/refresh pairs, stores hashed refresh records, rotates and
    revokes them. `store` is any object with the DBStorage credential methods.
    """

    def __init__(
        self,
        store,
        verifier: PasswordVerifier,
        *,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_expires: timedelta = DEFAULT_ACCESS_EXPIRES,
        refresh_expires: timedelta = DEFAULT_REFRESH_EXPIRES,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.verifier = verifier
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_expires = access_expires
        self.refresh_expires = refresh_expires
        self.clock = clock

    @classmethod
    def from_config(cls, config, store, verifier: PasswordVerifier) -> "TokenService":
        return cls(
            store,
            verifier,
            access_secret=config["JWT_SECRET"],
            refresh_secret=config["JWT_REFRESH_SECRET"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            access_expires=config.get("ACCESS_TOKEN_EXPIRES", DEFAULT_ACCESS_EXPIRES),
            refresh_expires=config.get("REFRESH_TOKEN_EXPIRES", DEFAULT_REFRESH_EXPIRES),
        )

    def issue(self, username: str) -> TokenPair:
        """Mint a new pair. Nothing is stored; see persist_refresh_token()."""
        now = self.clock()
        access_token = encode_token(
            {"username": username, "jti": generate_jti()},
            token_type=ACCESS_TOKEN_TYPE,
            secret=self.access_secret,
            algorithm=self.algorithm,
            issued_at=now,
            expires_in=self.access_expires,
        )
        refresh_token = encode_token(
            {"username": username, "token_id": generate_jti()},
            token_type=REFRESH_TOKEN_TYPE,
            secret=self.refresh_secret,
            algorithm=self.algorithm,
            issued_at=now,
            expires_in=self.refresh_expires,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self.access_expires.total_seconds()),
            refresh_expires_at=now + self.refresh_expires,
        )

    def persist_refresh_token(self, username: str, raw_refresh_token: str, expires_at: datetime) -> RefreshToken:
        """Store the hash of a freshly issued refresh token as an unrevoked record."""
        token_hash = self.verifier.hash(raw_refresh_token)
        record = RefreshToken(username=username, token_hash=token_hash, expires_at=expires_at, revoked=False)
        with self.store.transaction():
            self.store.add_refresh_token(record)
        return record

    def rotate(self, raw_refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair. The presented token is
        revoked and the new one stored in the same transaction; every
        failure reaches the caller as a bare InvalidToken.
        """
        now = self.clock()
        try:
            claims = decode_token(
                raw_refresh_token,
                expected_type=REFRESH_TOKEN_TYPE,
                secret=self.refresh_secret,
                algorithm=self.algorithm,
                now=now,
            )
        except InvalidToken as exc:
            logger.info("Refresh rejected: %s", exc.message)
            raise InvalidToken() from exc

        username = claims["username"]
        candidates = self.store.active_refresh_tokens(username, now)
        record = self._match(candidates, raw_refresh_token)
        if record is None:
            # revoked, expired, unknown user, or never stored
            logger.warning(
                "Refresh rejected for %s: no active record matches (%d candidates)",
                username,
                len(candidates),
            )
            raise InvalidToken()

        pair = self.issue(username)
        new_hash = self.verifier.hash(pair.refresh_token)
        with self.store.transaction():
            if not self.store.claim_refresh_token(record.id):
                logger.warning("Refresh token %s for %s was already rotated", record.id, username)
                raise InvalidToken()
            self.store.add_refresh_token(
                RefreshToken(
                    username=username,
                    token_hash=new_hash,
                    expires_at=pair.refresh_expires_at,
                    revoked=False,
                )
            )
        logger.info("Refresh token rotated for %s (old record %s)", username, record.id)
        return pair

    def revoke(self, username: str, raw_refresh_token: Optional[str] = None) -> int:
        """
        Revoke one refresh token of a user, or every unrevoked one when no
        token (or an empty one) is given. Returns how many records were revoked.
        """
        if not raw_refresh_token:
            with self.store.transaction():
                count = self.store.revoke_all_refresh_tokens(username)
            logger.info("Revoked all %d refresh tokens for %s", count, username)
            return count

        record = self._match(self.store.revocable_refresh_tokens(username), raw_refresh_token)
        if record is None:
            logger.info("Revoke for %s matched no active refresh token", username)
            return 0
        with self.store.transaction():
            claimed = self.store.claim_refresh_token(record.id)
        return 1 if claimed else 0

    def validate_access(self, token: str) -> str:
        """Return the username of a valid access token whose user still exists."""
        try:
            claims = decode_token(
                token,
                expected_type=ACCESS_TOKEN_TYPE,
                secret=self.access_secret,
                algorithm=self.algorithm,
                now=self.clock(),
            )
        except InvalidToken as exc:
            logger.debug("Access token rejected: %s", exc.message)
            raise InvalidToken() from exc
        username = claims["username"]
        if self.store.get_user(username) is None:
            raise UserNotFound()
        return username

    def _match(self, candidates: Iterable[RefreshToken], raw_refresh_token: str) -> Optional[RefreshToken]:
        for record in candidates:
            if self.verifier.verify(raw_refresh_token, record.token_hash):
                return record
        return None
