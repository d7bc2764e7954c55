"""
Password verifier backed by argon2-cffi.

Argon2id salts every hash, so two hashes of the same input never compare
equal; always go through verify_password(). Refresh tokens are hashed with
the same hasher.
"""
from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import HashingError as Argon2HashingError
from argon2.exceptions import InvalidHashError, VerificationError

from auth.errors import HashingError


class PasswordVerifier:
    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self.ph = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    @classmethod
    def from_config(cls, config) -> "PasswordVerifier":
        return cls(
            time_cost=config.get("ARGON2_TIME_COST", 3),
            memory_cost=config.get("ARGON2_MEMORY_COST", 65536),
            parallelism=config.get("ARGON2_PARALLELISM", 4),
        )

    def hash(self, password: str) -> str:
        """Hash a plaintext secret using Argon2."""
        try:
            return self.ph.hash(password)
        except (Argon2HashingError, MemoryError) as exc:
            raise HashingError() from exc

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a plaintext secret; False on mismatch or unreadable hash."""
        try:
            return self.ph.verify(password_hash, password)
        except (VerificationError, InvalidHashError):
            return False
