from __future__ import annotations

import logging
from datetime import date
from typing import cast

from fastapi import HTTPException, status
from sqlalchemy import desc, or_
from sqlalchemy.sql.schema import Table
from sqlmodel import Session, select

from matchmaker.core.errors import ConflictError
from matchmaker.core.messages import Operation
from matchmaker.models.couple import Couple
from matchmaker.models.lock import Lock, LockOutcome
from matchmaker.models.notification import NotificationKind
from matchmaker.models.user import LINKED_STATUSES, User, UserStatus
from matchmaker.schemas.actions import ActionResult
from matchmaker.services.account_store import (
    close_lock,
    ensure_linked,
    get_lock,
    get_user,
    mark_reject_requested,
    require_acting_user,
    require_active_lock,
    swap_user_state,
)
from matchmaker.services.notification_service import notify
from matchmaker.services.transitions import commit_transition

logger = logging.getLogger(__name__)

# Lock lifecycle:
#   locked -> mark_married (request_confirm_locked) -> married (confirm_success)
#                                                 \-> locked  (decline_success)
#   locked -> reject pending (request_reject_locked) -> available (confirm_reject)
#   A pending reject cannot be cancelled or refused: it ends only through
#   confirm_reject or withdraw_lock, and request_confirm_locked is refused
#   while it stands.
#   locked | mark_married -> available (withdraw_lock)
# Every write re-checks the stored state; a mismatch is a ConflictError.


def _hold(session: Session, user: User, lock: Lock) -> None:
    """Re-assert a user's current state inside the transaction."""
    assert user.id is not None
    swap_user_state(
        session,
        user.id,
        expected_status=user.status,
        expected_lock_id=lock.id,
        new_status=user.status,
        new_lock_id=lock.id,
    )


def withdraw_lock(
    session: Session,
    *,
    caller_id: int,
    user_id: int,
    lock_id: int,
) -> ActionResult:
    require_acting_user(session, caller_id, user_id)
    lock = get_lock(session, lock_id, for_update=True)
    if lock is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lock not found.",
        )
    if not lock.has_party(user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not part of this lock.",
        )
    other_id = lock.other_party(user_id)
    other = get_user(session, other_id, for_update=True)
    if other is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )

    def apply() -> None:
        if not lock.is_active:
            raise ConflictError(f"lock {lock_id} is not active")
        close_lock(
            session,
            lock_id,
            outcome=LockOutcome.withdrawn,
            withdrawn_by_id=user_id,
        )
        for party_id in (user_id, other_id):
            swap_user_state(
                session,
                party_id,
                expected_status=LINKED_STATUSES,
                expected_lock_id=lock_id,
                new_status=UserStatus.available,
                new_lock_id=None,
            )
        notify(
            session,
            user_id=other_id,
            kind=NotificationKind.lock_withdrawn,
            from_user_id=user_id,
            lock_id=lock_id,
        )
        logger.info("lock %s withdrawn by %s", lock_id, user_id)

    return commit_transition(session, Operation.withdraw_lock, other.name, apply)


def request_confirm_locked(session: Session, *, caller_id: int, user_id: int) -> ActionResult:
    """Phase 1 of the marriage handshake: record intent, prompt the other side."""
    notifier = require_acting_user(session, caller_id, user_id)
    lock, to_approve = require_active_lock(session, notifier)

    def apply() -> None:
        ensure_linked(notifier, lock, UserStatus.locked)
        ensure_linked(to_approve, lock, UserStatus.locked)
        if lock.reject_requested_by_id is not None:
            raise ConflictError(f"lock {lock.id} has a pending reject")
        assert to_approve.id is not None
        swap_user_state(
            session,
            user_id,
            expected_status=UserStatus.locked,
            expected_lock_id=lock.id,
            new_status=UserStatus.mark_married,
            new_lock_id=lock.id,
        )
        _hold(session, to_approve, lock)
        notify(
            session,
            user_id=to_approve.id,
            kind=NotificationKind.confirm_success_requested,
            from_user_id=user_id,
            lock_id=lock.id,
        )
        logger.info("lock %s: %s asked %s to confirm", lock.id, user_id, to_approve.id)

    return commit_transition(
        session, Operation.request_confirm_locked, to_approve.name, apply
    )


def confirm_success(session: Session, *, caller_id: int, user_id: int) -> ActionResult:
    """Phase 2 of the marriage handshake: record the couple, close the lock."""
    accepting = require_acting_user(session, caller_id, user_id)
    lock, requesting = require_active_lock(session, accepting)

    def apply() -> None:
        ensure_linked(accepting, lock, UserStatus.locked)
        ensure_linked(requesting, lock, UserStatus.mark_married)
        assert lock.id is not None and requesting.id is not None
        close_lock(session, lock.id, outcome=LockOutcome.married)
        swap_user_state(
            session,
            requesting.id,
            expected_status=UserStatus.mark_married,
            expected_lock_id=lock.id,
            new_status=UserStatus.married,
            new_lock_id=None,
        )
        swap_user_state(
            session,
            user_id,
            expected_status=UserStatus.locked,
            expected_lock_id=lock.id,
            new_status=UserStatus.married,
            new_lock_id=None,
        )
        couple = Couple(
            one_id=requesting.id,
            another_id=user_id,
            lock_id=lock.id,
            married_date=date.today(),
        )
        session.add(couple)
        session.flush()
        notify(
            session,
            user_id=requesting.id,
            kind=NotificationKind.married,
            from_user_id=user_id,
            lock_id=lock.id,
        )
        logger.info("lock %s: couple %s recorded", lock.id, couple.id)

    return commit_transition(session, Operation.confirm_success, requesting.name, apply)


def decline_success(session: Session, *, caller_id: int, user_id: int) -> ActionResult:
    declining = require_acting_user(session, caller_id, user_id)
    lock, requesting = require_active_lock(session, declining)

    def apply() -> None:
        ensure_linked(declining, lock, UserStatus.locked)
        ensure_linked(requesting, lock, UserStatus.mark_married)
        assert requesting.id is not None
        swap_user_state(
            session,
            requesting.id,
            expected_status=UserStatus.mark_married,
            expected_lock_id=lock.id,
            new_status=UserStatus.locked,
            new_lock_id=lock.id,
        )
        _hold(session, declining, lock)
        notify(
            session,
            user_id=requesting.id,
            kind=NotificationKind.success_declined,
            from_user_id=user_id,
            lock_id=lock.id,
        )
        logger.info("lock %s: %s declined the confirmation", lock.id, user_id)

    return commit_transition(session, Operation.decline_success, requesting.name, apply)


def request_reject_locked(session: Session, *, caller_id: int, user_id: int) -> ActionResult:
    """Phase 1 of the reject handshake. Statuses stay as they are."""
    rejecting = require_acting_user(session, caller_id, user_id)
    lock, to_approve = require_active_lock(session, rejecting)

    def apply() -> None:
        ensure_linked(rejecting, lock, UserStatus.locked)
        ensure_linked(to_approve, lock, UserStatus.locked)
        assert lock.id is not None and to_approve.id is not None
        mark_reject_requested(session, lock.id, user_id)
        _hold(session, rejecting, lock)
        _hold(session, to_approve, lock)
        notify(
            session,
            user_id=to_approve.id,
            kind=NotificationKind.confirm_reject_requested,
            from_user_id=user_id,
            lock_id=lock.id,
        )
        logger.info("lock %s: %s asked to end it", lock.id, user_id)

    return commit_transition(
        session, Operation.request_reject_locked, to_approve.name, apply
    )


def confirm_reject(session: Session, *, caller_id: int, user_id: int) -> ActionResult:
    """Phase 2 of the reject handshake: release both users."""
    confirming = require_acting_user(session, caller_id, user_id)
    lock, rejecting = require_active_lock(session, confirming)

    def apply() -> None:
        if lock.reject_requested_by_id != rejecting.id:
            raise ConflictError(f"lock {lock.id} has no reject pending from {rejecting.id}")
        ensure_linked(confirming, lock, UserStatus.locked)
        ensure_linked(rejecting, lock, UserStatus.locked)
        assert lock.id is not None and rejecting.id is not None
        close_lock(
            session,
            lock.id,
            outcome=LockOutcome.rejected,
            reject_requested_by_id=rejecting.id,
        )
        for party_id in (rejecting.id, user_id):
            swap_user_state(
                session,
                party_id,
                expected_status=UserStatus.locked,
                expected_lock_id=lock.id,
                new_status=UserStatus.available,
                new_lock_id=None,
            )
        notify(
            session,
            user_id=rejecting.id,
            kind=NotificationKind.lock_rejected,
            from_user_id=user_id,
            lock_id=lock.id,
        )
        logger.info("lock %s ended by mutual rejection", lock.id)

    return commit_transition(session, Operation.confirm_reject, rejecting.name, apply)


def current_lock(session: Session, user: User) -> Lock | None:
    if user.id is None or user.lock_id is None:
        return None
    lock = get_lock(session, user.lock_id)
    if lock is None or not lock.is_active:
        return None
    return lock


def list_locks_for_user(session: Session, user_id: int) -> list[Lock]:
    lock_table = cast(Table, Lock.__table__)  # type: ignore[attr-defined]
    statement = (
        select(Lock)
        .where(or_(lock_table.c.one_id == user_id, lock_table.c.another_id == user_id))
        .order_by(desc(lock_table.c.created_at), desc(lock_table.c.id))
    )
    return list(session.exec(statement).all())


def couple_for_user(session: Session, user_id: int) -> Couple | None:
    couple_table = cast(Table, Couple.__table__)  # type: ignore[attr-defined]
    statement = select(Couple).where(
        or_(couple_table.c.one_id == user_id, couple_table.c.another_id == user_id)
    )
    return session.exec(statement).first()
