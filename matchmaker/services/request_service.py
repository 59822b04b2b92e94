from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import cast

from fastapi import HTTPException, status
from sqlalchemy import desc, func
from sqlalchemy.sql.schema import Table
from sqlmodel import Session, select

from matchmaker.core.errors import ConflictError
from matchmaker.core.messages import Operation
from matchmaker.models.notification import NotificationKind
from matchmaker.models.request import Request, RequestStatus
from matchmaker.models.user import UserStatus
from matchmaker.schemas.actions import ActionResult, Relationship
from matchmaker.services.account_store import (
    find_latest_request,
    find_open_request,
    get_user,
    hold_user_status,
    open_lock,
    require_acting_user,
    require_user,
    swap_request_status,
    swap_user_state,
)
from matchmaker.services.notification_service import notify
from matchmaker.services.subscription import require_active_subscription
from matchmaker.services.transitions import commit_transition

logger = logging.getLogger(__name__)

UNMARRIED_STATUSES = (UserStatus.available, UserStatus.locked, UserStatus.mark_married)


class Direction(str, Enum):
    incoming = "incoming"
    outgoing = "outgoing"


def create_request(
    session: Session,
    *,
    caller_id: int,
    from_id: int,
    to_id: int,
) -> ActionResult:
    from_user = require_acting_user(session, caller_id, from_id)
    to_user = require_user(session, to_id)

    def apply() -> None:
        if from_id == to_id:
            raise ConflictError("cannot send a request to yourself")
        if from_user.status != UserStatus.available:
            raise ConflictError(f"sender is {from_user.status.value}")
        if to_user.status == UserStatus.married:
            raise ConflictError("recipient is married")
        if find_open_request(session, from_id, to_id) is not None:
            raise ConflictError(f"request {from_id}->{to_id} is already open")
        # the loads above may be stale; both rows must still allow the request
        swap_user_state(
            session,
            from_id,
            expected_status=UserStatus.available,
            expected_lock_id=None,
            new_status=UserStatus.available,
            new_lock_id=None,
        )
        hold_user_status(session, to_id, UNMARRIED_STATUSES)

        request = Request(from_id=from_id, to_id=to_id, asked_date=date.today())
        session.add(request)
        session.flush()
        notify(
            session,
            user_id=to_id,
            kind=NotificationKind.request_received,
            from_user_id=from_id,
            request_id=request.id,
        )
        logger.info("request %s created %s->%s", request.id, from_id, to_id)

    return commit_transition(session, Operation.create_request, to_user.name, apply)


def withdraw_request(
    session: Session,
    *,
    caller_id: int,
    from_id: int,
    to_id: int,
) -> ActionResult:
    require_acting_user(session, caller_id, from_id)
    to_user = require_user(session, to_id)

    def apply() -> None:
        request = find_open_request(session, from_id, to_id)
        if request is None or request.id is None:
            raise ConflictError(f"no open request {from_id}->{to_id}")
        swap_request_status(
            session,
            request.id,
            expected=RequestStatus.asked,
            new_status=RequestStatus.withdrawn,
            withdraw_date=date.today(),
        )
        logger.info("request %s withdrawn by %s", request.id, from_id)

    return commit_transition(session, Operation.withdraw_request, to_user.name, apply)


def accept_request(
    session: Session,
    *,
    caller_id: int,
    to_id: int,
    from_id: int,
) -> ActionResult:
    """Accept an open request and lock both users with each other.

    The request status, the new lock and both user rows change together or
    not at all.
    """
    to_user = require_acting_user(session, caller_id, to_id)
    require_active_subscription(to_user)
    from_user = require_user(session, from_id)

    def apply() -> None:
        request = find_open_request(session, from_id, to_id)
        if request is None or request.id is None:
            raise ConflictError(f"no open request {from_id}->{to_id}")
        for party in (to_user, from_user):
            if party.status != UserStatus.available or party.lock_id is not None:
                raise ConflictError(f"user {party.id} is {party.status.value}")

        swap_request_status(
            session,
            request.id,
            expected=RequestStatus.asked,
            new_status=RequestStatus.accepted,
            approved_date=date.today(),
        )
        lock = open_lock(session, one_id=to_id, another_id=from_id, request_id=request.id)
        for party_id in (to_id, from_id):
            swap_user_state(
                session,
                party_id,
                expected_status=UserStatus.available,
                expected_lock_id=None,
                new_status=UserStatus.locked,
                new_lock_id=lock.id,
            )
        notify(
            session,
            user_id=from_id,
            kind=NotificationKind.request_accepted,
            from_user_id=to_id,
            lock_id=lock.id,
            request_id=request.id,
        )
        logger.info(
            "request %s accepted; lock %s opened for %s and %s",
            request.id,
            lock.id,
            to_id,
            from_id,
        )

    return commit_transition(session, Operation.accept_request, from_user.name, apply)


def decline_request(
    session: Session,
    *,
    caller_id: int,
    to_id: int,
    from_id: int,
) -> ActionResult:
    to_user = require_acting_user(session, caller_id, to_id)
    require_active_subscription(to_user)
    from_user = require_user(session, from_id)

    def apply() -> None:
        request = find_open_request(session, from_id, to_id)
        if request is None or request.id is None:
            raise ConflictError(f"no open request {from_id}->{to_id}")
        swap_request_status(
            session,
            request.id,
            expected=RequestStatus.asked,
            new_status=RequestStatus.declined,
            rejected_date=date.today(),
        )
        logger.info("request %s declined by %s", request.id, to_id)

    return commit_transition(session, Operation.decline_request, from_user.name, apply)


def list_requests(
    session: Session,
    user_id: int,
    *,
    direction: Direction,
    limit: int,
    offset: int,
    status: RequestStatus | None = None,
) -> tuple[int, list[Request]]:
    request_table = cast(Table, Request.__table__)  # type: ignore[attr-defined]
    if direction == Direction.incoming:
        owner_column = request_table.c.to_id
    else:
        owner_column = request_table.c.from_id

    count_statement = (
        select(func.count()).select_from(request_table).where(owner_column == user_id)
    )
    if status is not None:
        count_statement = count_statement.where(request_table.c.status == status)
    total_result = session.exec(count_statement).one()
    total_count = int(
        total_result[0] if isinstance(total_result, tuple) else total_result
    )

    statement = select(Request).where(owner_column == user_id)
    if status is not None:
        statement = statement.where(request_table.c.status == status)
    statement = (
        statement.order_by(desc(request_table.c.created_at), desc(request_table.c.id))
        .offset(offset)
        .limit(limit)
    )
    return total_count, list(session.exec(statement).all())


def relationship_with(session: Session, viewer_id: int, other_id: int) -> Relationship:
    if get_user(session, other_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )
    view = Relationship(user_id=other_id)
    if viewer_id == other_id:
        return view

    sent = find_latest_request(session, viewer_id, other_id)
    if sent is None or sent.status != RequestStatus.asked:
        view.show_send = True
    else:
        view.show_withdraw = True

    received = find_latest_request(session, other_id, viewer_id)
    if received is not None and received.status == RequestStatus.asked:
        view.show_accept = view.show_decline = True
    return view
