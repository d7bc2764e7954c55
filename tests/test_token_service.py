from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy.exc import OperationalError

from api.config import TestingConfig
from auth.errors import AuthError, InvalidToken, StorageError, UserNotFound
from auth.service import TokenPair, TokenService
from models.refresh_token import RefreshToken
from models.user import User


def _create_user(storage, verifier, username: str = "alice", password: str = "secret1") -> User:
    with storage.transaction():
        return storage.add_user(User(username=username, password_hash=verifier.hash(password)))


def _start_session(tokens: TokenService, username: str = "alice") -> TokenPair:
    pair = tokens.issue(username)
    tokens.persist_refresh_token(username, pair.refresh_token, pair.refresh_expires_at)
    return pair


def _records(storage, username: str = "alice") -> list[RefreshToken]:
    return storage.get_session().query(RefreshToken).filter(RefreshToken.username == username).all()


def _service_at(storage, verifier, moment: datetime) -> TokenService:
    return TokenService(
        storage,
        verifier,
        access_secret=TestingConfig.JWT_SECRET,
        refresh_secret=TestingConfig.JWT_REFRESH_SECRET,
        clock=lambda: moment,
    )


def test_issue_mints_distinct_pairs_without_storing_anything(storage, tokens) -> None:
    first = tokens.issue("alice")
    second = tokens.issue("alice")

    assert first.access_token != second.access_token
    assert first.refresh_token != second.refresh_token
    assert first.expires_in == 15 * 60
    assert _records(storage) == []


def test_issue_signs_access_and_refresh_with_separate_secrets(tokens) -> None:
    pair = tokens.issue("alice")

    access = jwt.decode(pair.access_token, TestingConfig.JWT_SECRET, algorithms=["HS256"])
    refresh = jwt.decode(pair.refresh_token, TestingConfig.JWT_REFRESH_SECRET, algorithms=["HS256"])

    assert access["username"] == "alice"
    assert access["type"] == "access"
    assert access["exp"] - access["iat"] == 15 * 60
    assert refresh["username"] == "alice"
    assert refresh["type"] == "refresh"
    assert refresh["token_id"]
    assert refresh["exp"] - refresh["iat"] == 7 * 24 * 60 * 60
    with pytest.raises(jwt.InvalidSignatureError):
        jwt.decode(pair.access_token, TestingConfig.JWT_REFRESH_SECRET, algorithms=["HS256"])


def test_persist_stores_only_a_hash_of_the_refresh_token(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    pair = _start_session(tokens)

    (record,) = _records(storage)
    assert record.revoked is False
    assert record.token_hash != pair.refresh_token
    assert pair.refresh_token not in record.token_hash
    assert verifier.verify(pair.refresh_token, record.token_hash)
    assert "token_hash" not in record.to_dict()


def test_rotate_returns_new_pair_and_revokes_old_record(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    pair = _start_session(tokens)

    rotated = tokens.rotate(pair.refresh_token)

    assert rotated.refresh_token != pair.refresh_token
    assert tokens.validate_access(rotated.access_token) == "alice"
    records = _records(storage)
    assert len(records) == 2
    storage.get_session().expire_all()
    assert sorted(r.revoked for r in _records(storage)) == [False, True]


def test_rotated_token_is_single_use(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    pair = _start_session(tokens)
    rotated = tokens.rotate(pair.refresh_token)

    with pytest.raises(AuthError):
        tokens.rotate(pair.refresh_token)

    # the replacement still works
    assert tokens.rotate(rotated.refresh_token).access_token


def test_rotate_rejects_access_tokens_and_garbage(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    pair = _start_session(tokens)

    for bad in (pair.access_token, "not-a-jwt", ""):
        with pytest.raises(InvalidToken) as excinfo:
            tokens.rotate(bad)
        assert excinfo.value.message == InvalidToken.default_message


def test_rotate_rejects_token_that_was_never_stored(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    _start_session(tokens)
    unsaved = tokens.issue("alice")

    with pytest.raises(InvalidToken):
        tokens.rotate(unsaved.refresh_token)


def test_rotate_for_unknown_user_is_indistinguishable(tokens) -> None:
    ghost = tokens.issue("nobody")

    with pytest.raises(InvalidToken) as excinfo:
        tokens.rotate(ghost.refresh_token)
    assert excinfo.value.message == InvalidToken.default_message


def test_rotate_rejects_expired_refresh_token(storage, verifier) -> None:
    _create_user(storage, verifier)
    eight_days_ago = datetime.now(timezone.utc) - timedelta(days=8)
    stale = _service_at(storage, verifier, eight_days_ago)
    pair = _start_session(stale)

    fresh = _service_at(storage, verifier, datetime.now(timezone.utc))
    with pytest.raises(InvalidToken):
        fresh.rotate(pair.refresh_token)


def test_rotate_ignores_records_past_their_stored_expiry(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    pair = tokens.issue("alice")
    tokens.persist_refresh_token("alice", pair.refresh_token, datetime.now(timezone.utc) - timedelta(minutes=1))

    with pytest.raises(InvalidToken):
        tokens.rotate(pair.refresh_token)


def test_revoke_without_token_revokes_every_session(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    pairs = [_start_session(tokens) for _ in range(3)]

    assert tokens.revoke("alice") == 3

    for pair in pairs:
        with pytest.raises(AuthError):
            tokens.rotate(pair.refresh_token)
    assert tokens.revoke("alice") == 0


def test_revoke_with_token_only_revokes_that_session(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    kept = _start_session(tokens)
    dropped = _start_session(tokens)

    assert tokens.revoke("alice", dropped.refresh_token) == 1

    with pytest.raises(InvalidToken):
        tokens.rotate(dropped.refresh_token)
    assert tokens.rotate(kept.refresh_token).refresh_token
    # revocation is a flag; nothing is deleted
    assert len(_records(storage)) == 3


def test_revoke_with_unknown_token_is_a_no_op(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    pair = _start_session(tokens)

    assert tokens.revoke("alice", tokens.issue("alice").refresh_token) == 0
    assert tokens.rotate(pair.refresh_token).access_token


def test_validate_access_returns_username(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)

    assert tokens.validate_access(tokens.issue("alice").access_token) == "alice"


def test_validate_access_rejects_expired_token(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    twenty_minutes_ago = datetime.now(timezone.utc) - timedelta(minutes=20)
    pair = _service_at(storage, verifier, twenty_minutes_ago).issue("alice")

    with pytest.raises(InvalidToken):
        tokens.validate_access(pair.access_token)


def test_validate_access_rejects_refresh_token(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)

    with pytest.raises(InvalidToken):
        tokens.validate_access(tokens.issue("alice").refresh_token)


def test_validate_access_rejects_deleted_user(storage, verifier, tokens) -> None:
    user = _create_user(storage, verifier)
    pair = _start_session(tokens)
    with storage.transaction() as session:
        session.delete(user)

    with pytest.raises(UserNotFound):
        tokens.validate_access(pair.access_token)
    with pytest.raises(InvalidToken):
        tokens.rotate(pair.refresh_token)


def test_concurrent_rotation_of_same_token_lets_only_one_win(storage, verifier, tokens, monkeypatch) -> None:
    _create_user(storage, verifier)
    pair = _start_session(tokens)
    lookup = storage.active_refresh_tokens
    state = {"raced": False}

    def racing_lookup(username, now):
        # both requests read the record before either revokes it
        candidates = lookup(username, now)
        if not state["raced"]:
            state["raced"] = True
            state["winner"] = tokens.rotate(pair.refresh_token)
        return candidates

    monkeypatch.setattr(storage, "active_refresh_tokens", racing_lookup)

    with pytest.raises(AuthError):
        tokens.rotate(pair.refresh_token)

    assert isinstance(state["winner"], TokenPair)
    storage.get_session().expire_all()
    assert sorted(r.revoked for r in _records(storage)) == [False, True]


def test_failed_insert_rolls_back_the_revocation(storage, verifier, tokens, monkeypatch) -> None:
    _create_user(storage, verifier)
    pair = _start_session(tokens)

    def broken_insert(record):
        raise OperationalError("INSERT INTO refresh_tokens", {}, Exception("disk I/O error"))

    with monkeypatch.context() as m:
        m.setattr(storage, "add_refresh_token", broken_insert)
        with pytest.raises(StorageError):
            tokens.rotate(pair.refresh_token)

    storage.get_session().expire_all()
    (record,) = _records(storage)
    assert record.revoked is False
    assert tokens.rotate(pair.refresh_token).refresh_token


def test_revoke_with_empty_token_revokes_every_session(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    _start_session(tokens)
    _start_session(tokens)

    assert tokens.revoke("alice", "") == 2
    assert all(record.revoked for record in _records(storage))


def test_expiry_is_judged_by_the_service_clock(storage, verifier) -> None:
    _create_user(storage, verifier)
    an_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
    past = _service_at(storage, verifier, an_hour_ago)
    pair = _start_session(past)

    # long expired by the wall clock, still fresh at the service's time
    assert past.validate_access(pair.access_token) == "alice"
    assert past.rotate(pair.refresh_token).access_token


def test_token_is_expired_once_the_clock_passes_exp(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    pair = tokens.issue("alice")
    later = _service_at(storage, verifier, datetime.now(timezone.utc) + timedelta(minutes=20))

    with pytest.raises(InvalidToken):
        later.validate_access(pair.access_token)


def test_token_issued_after_the_clock_is_rejected(storage, verifier, tokens) -> None:
    _create_user(storage, verifier)
    pair = tokens.issue("alice")
    earlier = _service_at(storage, verifier, datetime.now(timezone.utc) - timedelta(minutes=5))

    with pytest.raises(InvalidToken):
        earlier.validate_access(pair.access_token)
