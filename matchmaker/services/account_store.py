from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, cast

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.sql.schema import Table
from sqlmodel import Session, select

from matchmaker.core.errors import ConflictError
from matchmaker.models.lock import Lock, LockOutcome
from matchmaker.models.request import Request, RequestStatus
from matchmaker.models.user import User, UserStatus

# Lookups return None for missing rows; require_* turn that into a 404.
# The swap_* writers are compare-and-set: each is a single conditional UPDATE
# that raises ConflictError when the row no longer holds the expected state.


def get_user(session: Session, user_id: int, *, for_update: bool = False) -> User | None:
    statement = select(User).where(User.id == user_id)
    if for_update:
        statement = statement.with_for_update().execution_options(
            populate_existing=True
        )
    return session.exec(statement).first()


def get_lock(session: Session, lock_id: int, *, for_update: bool = False) -> Lock | None:
    statement = select(Lock).where(Lock.id == lock_id)
    if for_update:
        statement = statement.with_for_update().execution_options(
            populate_existing=True
        )
    return session.exec(statement).first()


def find_open_request(session: Session, from_id: int, to_id: int) -> Request | None:
    statement = (
        select(Request)
        .where(Request.from_id == from_id)
        .where(Request.to_id == to_id)
        .where(Request.status == RequestStatus.asked)
        .with_for_update()
    )
    return session.exec(statement).first()


def find_latest_request(session: Session, from_id: int, to_id: int) -> Request | None:
    request_table = cast(Table, Request.__table__)  # type: ignore[attr-defined]
    statement = (
        select(Request)
        .where(Request.from_id == from_id)
        .where(Request.to_id == to_id)
        .order_by(request_table.c.id.desc())
    )
    return session.exec(statement).first()


def require_user(session: Session, user_id: int) -> User:
    user = get_user(session, user_id, for_update=True)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )
    return user


def require_acting_user(session: Session, caller_id: int, acting_id: int) -> User:
    """Load the user an operation acts as, which must be the caller."""
    if acting_id != caller_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acting user does not match the authenticated user.",
        )
    return require_user(session, acting_id)


def require_active_lock(session: Session, user: User) -> tuple[Lock, User]:
    """Resolve the user's active lock and the other party to it."""
    if user.id is None or user.lock_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active lock.",
        )
    lock = get_lock(session, user.lock_id, for_update=True)
    if lock is None or not lock.is_active or not lock.has_party(user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active lock.",
        )
    counterpart = get_user(session, lock.other_party(user.id), for_update=True)
    if counterpart is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )
    return lock, counterpart


def counterpart_id(session: Session, user: User) -> int | None:
    """The user on the other side of ``user``'s lock, if it is still active."""
    if user.id is None or user.lock_id is None:
        return None
    lock = get_lock(session, user.lock_id)
    if lock is None or not lock.is_active or not lock.has_party(user.id):
        return None
    return lock.other_party(user.id)


def ensure_linked(user: User, lock: Lock, *expected: UserStatus) -> None:
    if user.status not in expected:
        raise ConflictError(f"user {user.id} is {user.status.value}")
    if user.lock_id != lock.id:
        raise ConflictError(f"user {user.id} is not linked to lock {lock.id}")


def _rowcount(result: Any) -> int:
    return int(getattr(result, "rowcount", 0) or 0)


def swap_user_state(
    session: Session,
    user_id: int,
    *,
    expected_status: UserStatus | Iterable[UserStatus],
    expected_lock_id: int | None,
    new_status: UserStatus,
    new_lock_id: int | None,
) -> None:
    user_table = cast(Table, User.__table__)  # type: ignore[attr-defined]
    if isinstance(expected_status, UserStatus):
        expected = [expected_status]
    else:
        expected = list(expected_status)
    statement = (
        update(user_table)
        .where(user_table.c.id == user_id)
        .where(user_table.c.status.in_(expected))
        .values(status=new_status, lock_id=new_lock_id)
    )
    if expected_lock_id is None:
        statement = statement.where(user_table.c.lock_id.is_(None))
    else:
        statement = statement.where(user_table.c.lock_id == expected_lock_id)

    result = session.exec(statement)  # type: ignore[call-overload]
    if _rowcount(result) != 1:
        raise ConflictError(
            f"user {user_id} is no longer "
            + "/".join(s.value for s in expected)
            + f" on lock {expected_lock_id}"
        )


def hold_user_status(session: Session, user_id: int, allowed: Iterable[UserStatus]) -> None:
    """Fail unless the stored status is still one of ``allowed``; writes nothing new."""
    user_table = cast(Table, User.__table__)  # type: ignore[attr-defined]
    statuses = list(allowed)
    statement = (
        update(user_table)
        .where(user_table.c.id == user_id)
        .where(user_table.c.status.in_(statuses))
        .values(status=user_table.c.status)
    )
    result = session.exec(statement)  # type: ignore[call-overload]
    if _rowcount(result) != 1:
        raise ConflictError(
            f"user {user_id} is no longer " + "/".join(s.value for s in statuses)
        )


def swap_request_status(
    session: Session,
    request_id: int,
    *,
    expected: RequestStatus,
    new_status: RequestStatus,
    **stamps: Any,
) -> None:
    request_table = cast(Table, Request.__table__)  # type: ignore[attr-defined]
    statement = (
        update(request_table)
        .where(request_table.c.id == request_id)
        .where(request_table.c.status == expected)
        .values(status=new_status, updated_at=datetime.utcnow(), **stamps)
    )
    result = session.exec(statement)  # type: ignore[call-overload]
    if _rowcount(result) != 1:
        raise ConflictError(f"request {request_id} is no longer {expected.value}")


def open_lock(session: Session, one_id: int, another_id: int, request_id: int | None) -> Lock:
    lock = Lock(one_id=one_id, another_id=another_id, request_id=request_id)
    session.add(lock)
    session.flush()
    return lock


def close_lock(
    session: Session,
    lock_id: int,
    *,
    outcome: LockOutcome,
    withdrawn_by_id: int | None = None,
    reject_requested_by_id: int | None = None,
) -> None:
    lock_table = cast(Table, Lock.__table__)  # type: ignore[attr-defined]
    now = datetime.utcnow()
    values: dict[str, Any] = {"is_active": False, "outcome": outcome, "closed_at": now}
    if outcome == LockOutcome.withdrawn:
        values["withdrawn_at"] = now
        values["withdrawn_by_id"] = withdrawn_by_id

    statement = (
        update(lock_table)
        .where(lock_table.c.id == lock_id)
        .where(lock_table.c.is_active.is_(True))
        .values(**values)
    )
    if outcome == LockOutcome.rejected:
        # the reject being confirmed must still be the one on record
        statement = statement.where(
            lock_table.c.reject_requested_by_id == reject_requested_by_id
        )

    result = session.exec(statement)  # type: ignore[call-overload]
    if _rowcount(result) != 1:
        raise ConflictError(f"lock {lock_id} is no longer active")


def mark_reject_requested(session: Session, lock_id: int, user_id: int) -> None:
    lock_table = cast(Table, Lock.__table__)  # type: ignore[attr-defined]
    statement = (
        update(lock_table)
        .where(lock_table.c.id == lock_id)
        .where(lock_table.c.is_active.is_(True))
        .where(lock_table.c.reject_requested_by_id.is_(None))
        .values(reject_requested_by_id=user_id, reject_requested_at=datetime.utcnow())
    )
    result = session.exec(statement)  # type: ignore[call-overload]
    if _rowcount(result) != 1:
        raise ConflictError(f"lock {lock_id} already has a pending reject")
