from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, SQLModel, create_engine, select

from matchmaker.core.errors import ConflictError
from matchmaker.models.couple import Couple
from matchmaker.models.lock import Lock
from matchmaker.models.request import Request, RequestStatus
from matchmaker.models.user import User, UserStatus
from matchmaker.services import account_store, lock_service, request_service

TEST_DB_FILENAME = "test_account_store.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILENAME}"


@pytest.fixture(scope="module")
def engine() -> Iterator[Engine]:
    test_engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()
    if os.path.exists(TEST_DB_FILENAME):
        os.remove(TEST_DB_FILENAME)


def _make_user(engine: Engine, name: str) -> int:
    with Session(engine) as session:
        user = User(
            email=f"{name.lower()}-{uuid4().hex[:8]}@example.com",
            name=name,
            password_hash="not-a-real-hash",
            subscription_expires_at=datetime.utcnow() + timedelta(days=1),
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        assert user.id is not None
        return user.id


def _load(engine: Engine, user_id: int) -> User:
    with Session(engine) as session:
        user = session.get(User, user_id)
        assert user is not None
        return user


def _lock_pair(engine: Engine, a_id: int, b_id: int) -> int:
    with Session(engine) as session:
        assert request_service.create_request(
            session, caller_id=a_id, from_id=a_id, to_id=b_id
        ).success
    with Session(engine) as session:
        assert request_service.accept_request(
            session, caller_id=b_id, to_id=b_id, from_id=a_id
        ).success
    lock_id = _load(engine, a_id).lock_id
    assert lock_id is not None
    return lock_id


def test_swap_user_state_rejects_unexpected_state(engine: Engine) -> None:
    user_id = _make_user(engine, "Swap")
    with Session(engine) as session:
        with pytest.raises(ConflictError):
            account_store.swap_user_state(
                session,
                user_id,
                expected_status=UserStatus.locked,
                expected_lock_id=None,
                new_status=UserStatus.available,
                new_lock_id=None,
            )
        session.rollback()
    assert _load(engine, user_id).status == UserStatus.available


def test_accept_rolls_back_when_lock_cannot_be_stored(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    a_id = _make_user(engine, "Ava")
    b_id = _make_user(engine, "Bex")
    with Session(engine) as session:
        assert request_service.create_request(
            session, caller_id=a_id, from_id=a_id, to_id=b_id
        ).success

    def broken_open_lock(*args: object, **kwargs: object) -> Lock:
        raise OperationalError("INSERT INTO lock", {}, Exception("disk I/O error"))

    monkeypatch.setattr(request_service, "open_lock", broken_open_lock)
    with Session(engine) as session:
        result = request_service.accept_request(
            session, caller_id=b_id, to_id=b_id, from_id=a_id
        )
    assert result.success is False
    assert "Ava" in result.message

    with Session(engine) as session:
        request = session.exec(
            select(Request).where(Request.from_id == a_id).where(Request.to_id == b_id)
        ).one()
        assert request.status == RequestStatus.asked
        assert request.approved_date is None
        locks = session.exec(select(Lock).where(Lock.one_id == b_id)).all()
        assert locks == []
    for user_id in (a_id, b_id):
        user = _load(engine, user_id)
        assert user.status == UserStatus.available
        assert user.lock_id is None


def test_confirm_loses_to_withdrawal_between_check_and_commit(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    a_id = _make_user(engine, "Cleo")
    b_id = _make_user(engine, "Dev")
    lock_id = _lock_pair(engine, a_id, b_id)
    with Session(engine) as session:
        assert lock_service.request_confirm_locked(
            session, caller_id=a_id, user_id=a_id
        ).success

    original = lock_service.require_active_lock

    def racing_require_active_lock(session: Session, user: User) -> tuple[Lock, User]:
        resolved = original(session, user)
        # the other party withdraws after validation has read the lock
        with Session(engine) as other:
            assert lock_service.withdraw_lock(
                other, caller_id=a_id, user_id=a_id, lock_id=lock_id
            ).success
        return resolved

    monkeypatch.setattr(lock_service, "require_active_lock", racing_require_active_lock)
    with Session(engine) as session:
        result = lock_service.confirm_success(session, caller_id=b_id, user_id=b_id)
    assert result.success is False

    with Session(engine) as session:
        assert session.exec(select(Couple).where(Couple.lock_id == lock_id)).all() == []
        lock = session.get(Lock, lock_id)
        assert lock is not None
        assert lock.is_active is False
    for user_id in (a_id, b_id):
        user = _load(engine, user_id)
        assert user.status == UserStatus.available
        assert user.lock_id is None


def test_withdraw_loses_to_confirm_between_check_and_commit(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    a_id = _make_user(engine, "Eli")
    b_id = _make_user(engine, "Flo")
    lock_id = _lock_pair(engine, a_id, b_id)
    with Session(engine) as session:
        assert lock_service.request_confirm_locked(
            session, caller_id=a_id, user_id=a_id
        ).success

    original = lock_service.get_lock

    def racing_get_lock(session: Session, lock_id: int, *, for_update: bool = False):
        found = original(session, lock_id, for_update=for_update)
        with Session(engine) as other:
            assert lock_service.confirm_success(
                other, caller_id=b_id, user_id=b_id
            ).success
        return found

    monkeypatch.setattr(lock_service, "get_lock", racing_get_lock)
    with Session(engine) as session:
        result = lock_service.withdraw_lock(
            session, caller_id=a_id, user_id=a_id, lock_id=lock_id
        )
    assert result.success is False

    for user_id in (a_id, b_id):
        user = _load(engine, user_id)
        assert user.status == UserStatus.married
    with Session(engine) as session:
        couples = session.exec(select(Couple).where(Couple.lock_id == lock_id)).all()
        assert len(couples) == 1


def test_open_request_is_unique_per_ordered_pair(engine: Engine) -> None:
    a_id = _make_user(engine, "Gil")
    b_id = _make_user(engine, "Hed")
    with Session(engine) as session:
        session.add(Request(from_id=a_id, to_id=b_id))
        session.commit()
    with Session(engine) as session:
        # bypasses the service check; the partial unique index still holds
        session.add(Request(from_id=a_id, to_id=b_id))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()
    with Session(engine) as session:
        # the reverse direction is a different pair
        session.add(Request(from_id=b_id, to_id=a_id))
        session.commit()


def test_request_from_sender_locked_between_check_and_insert(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    a_id = _make_user(engine, "Ira")
    b_id = _make_user(engine, "Jud")
    c_id = _make_user(engine, "Kit")
    with Session(engine) as session:
        assert request_service.create_request(
            session, caller_id=b_id, from_id=b_id, to_id=a_id
        ).success

    original = request_service.find_open_request
    raced = []

    def racing_find_open_request(session: Session, from_id: int, to_id: int):
        found = original(session, from_id, to_id)
        if not raced:
            raced.append(True)
            # the sender accepts another request after their status was read
            with Session(engine) as other:
                assert request_service.accept_request(
                    other, caller_id=a_id, to_id=a_id, from_id=b_id
                ).success
        return found

    monkeypatch.setattr(request_service, "find_open_request", racing_find_open_request)
    with Session(engine) as session:
        result = request_service.create_request(
            session, caller_id=a_id, from_id=a_id, to_id=c_id
        )
    assert result.success is False

    with Session(engine) as session:
        open_rows = session.exec(
            select(Request)
            .where(Request.from_id == a_id)
            .where(Request.to_id == c_id)
        ).all()
        assert open_rows == []
    sender = _load(engine, a_id)
    assert sender.status == UserStatus.locked
    assert sender.lock_id is not None


def test_request_to_recipient_married_between_check_and_insert(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    a_id = _make_user(engine, "Lux")
    c_id = _make_user(engine, "Mae")
    d_id = _make_user(engine, "Ned")
    _lock_pair(engine, c_id, d_id)
    with Session(engine) as session:
        assert lock_service.request_confirm_locked(
            session, caller_id=c_id, user_id=c_id
        ).success

    original = request_service.find_open_request

    def racing_find_open_request(session: Session, from_id: int, to_id: int):
        found = original(session, from_id, to_id)
        with Session(engine) as other:
            assert lock_service.confirm_success(
                other, caller_id=d_id, user_id=d_id
            ).success
        return found

    monkeypatch.setattr(request_service, "find_open_request", racing_find_open_request)
    with Session(engine) as session:
        result = request_service.create_request(
            session, caller_id=a_id, from_id=a_id, to_id=c_id
        )
    assert result.success is False

    with Session(engine) as session:
        rows = session.exec(
            select(Request).where(Request.from_id == a_id).where(Request.to_id == c_id)
        ).all()
        assert rows == []
    assert _load(engine, c_id).status == UserStatus.married
