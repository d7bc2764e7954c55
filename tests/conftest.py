from __future__ import annotations

import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from api import create_app
from api.config import TestingConfig
from auth.passwords import PasswordVerifier
from auth.service import TokenService
from auth.sessions import SessionManager
from models.db_storage import DBStorage


@pytest.fixture()
def storage():
    store = DBStorage("sqlite://")
    store.reload()
    yield store
    store.dispose()


@pytest.fixture()
def verifier() -> PasswordVerifier:
    return PasswordVerifier(
        time_cost=TestingConfig.ARGON2_TIME_COST,
        memory_cost=TestingConfig.ARGON2_MEMORY_COST,
        parallelism=TestingConfig.ARGON2_PARALLELISM,
    )


@pytest.fixture()
def tokens(storage, verifier) -> TokenService:
    return TokenService(
        storage,
        verifier,
        access_secret=TestingConfig.JWT_SECRET,
        refresh_secret=TestingConfig.JWT_REFRESH_SECRET,
    )


@pytest.fixture()
def sessions(storage, verifier, tokens) -> SessionManager:
    return SessionManager(storage, verifier, tokens)


@pytest.fixture()
def app(storage):
    return create_app("test", storage=storage)


@pytest.fixture()
def client(app):
    return app.test_client()
