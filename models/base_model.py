#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixin for the photo-sharing API models.

- created_at / updated_at timestamps, set by the database
- kwargs constructor
- to_dict() that formats timestamps and strips SQLAlchemy internals

Notes:
- func.now() maps to CURRENT_TIMESTAMP on SQLite.
- Persistence goes through DBStorage; models never commit themselves.
"""

from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

TIME_FMT = "%Y-%m-%dT%H:%M:%S.%f"

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


class BaseModel:
    """
    Base mixin for all persistent models.

    Primary keys are declared by each model (users are keyed by username,
    refresh tokens by a UUID string).
    """

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session.
        created_at/updated_at are left to the DB unless passed explicitly.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)

    def __str__(self) -> str:
        return f"[{self.__class__.__name__}] {self.to_dict()}"

    def to_dict(self) -> dict:
        """
        Return a dictionary of fields suitable for API responses:
        - Formats created_at / updated_at to TIME_FMT
        - Removes SQLAlchemy internal state
        - Drops hashed secrets (anything ending in "_hash")
        """
        d = {
            k: v
            for k, v in self.__dict__.items()
            if k != "_sa_instance_state" and not k.endswith("_hash")
        }
        for key in ("created_at", "updated_at", "expires_at"):
            if isinstance(d.get(key), datetime):
                d[key] = d[key].strftime(TIME_FMT)
        d["__class__"] = self.__class__.__name__
        return d
