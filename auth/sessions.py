from __future__ import annotations

import logging
from typing import Optional

from auth.errors import AuthError, ConflictError
from auth.passwords import PasswordVerifier
from auth.service import TokenPair, TokenService
from models.user import User

logger = logging.getLogger(__name__)


class SessionManager:
    """register / login / logout / refresh / authenticate over a TokenService."""

    def __init__(self, store, verifier: PasswordVerifier, tokens: TokenService):
        self.store = store
        self.verifier = verifier
        self.tokens = tokens
        self._dummy_hash: Optional[str] = None

    def register(self, username: str, password: str) -> TokenPair:
        if self.store.get_user(username) is not None:
            raise ConflictError()

        password_hash = self.verifier.hash(password)
        # the unique key still catches a concurrent registration of the same name
        with self.store.transaction():
            self.store.add_user(User(username=username, password_hash=password_hash))
        logger.info("User registered: %s", username)

        return self._start_session(username)

    def login(self, username: str, password: str) -> TokenPair:
        user = self.store.get_user(username)
        if user is None:
            # burn the same hashing effort so unknown names are not faster
            self.verifier.verify(password, self._get_dummy_hash())
            raise AuthError()
        if not self.verifier.verify(password, user.password_hash):
            raise AuthError()

        pair = self._start_session(username)
        logger.info("User logged in: %s", username)
        return pair

    def logout(self, username: str, refresh_token: Optional[str] = None) -> int:
        revoked = self.tokens.revoke(username, refresh_token)
        logger.info("User logged out: %s", username)
        return revoked

    def refresh(self, refresh_token: str) -> TokenPair:
        return self.tokens.rotate(refresh_token)

    def authenticate(self, bearer_token: str) -> str:
        return self.tokens.validate_access(bearer_token)

    def _start_session(self, username: str) -> TokenPair:
        pair = self.tokens.issue(username)
        self.tokens.persist_refresh_token(username, pair.refresh_token, pair.refresh_expires_at)
        return pair

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.verifier.hash("not-a-real-password")
        return self._dummy_hash
