from __future__ import annotations

from typing import cast

from fastapi import HTTPException, status
from sqlalchemy import desc, func
from sqlalchemy.sql.schema import Table
from sqlmodel import Session, select

from matchmaker.models.notification import Notification, NotificationKind


def notify(
    session: Session,
    *,
    user_id: int,
    kind: NotificationKind,
    from_user_id: int,
    lock_id: int | None = None,
    request_id: int | None = None,
) -> Notification:
    # Joins the caller's transaction; a rolled-back transition drops it too.
    notification = Notification(
        user_id=user_id,
        kind=kind,
        from_user_id=from_user_id,
        lock_id=lock_id,
        request_id=request_id,
    )
    session.add(notification)
    return notification


def list_notifications(
    session: Session,
    user_id: int,
    *,
    limit: int,
    offset: int,
    unread_only: bool = False,
) -> tuple[int, list[Notification]]:
    notification_table = cast(
        Table,
        Notification.__table__,  # type: ignore[attr-defined]
    )

    count_statement = (
        select(func.count())
        .select_from(notification_table)
        .where(notification_table.c.user_id == user_id)
    )
    if unread_only:
        count_statement = count_statement.where(
            notification_table.c.is_read.is_(False)
        )
    total_result = session.exec(count_statement).one()
    total_count = int(
        total_result[0] if isinstance(total_result, tuple) else total_result
    )

    statement = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        statement = statement.where(notification_table.c.is_read.is_(False))
    statement = (
        statement.order_by(
            desc(notification_table.c.created_at),
            desc(notification_table.c.id),
        )
        .offset(offset)
        .limit(limit)
    )
    return total_count, list(session.exec(statement).all())


def mark_read(session: Session, notification_id: int, user_id: int) -> Notification:
    notification = session.get(Notification, notification_id)
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found.",
        )
    if notification.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Notification belongs to another user.",
        )
    if not notification.is_read:
        notification.is_read = True
        session.add(notification)
        session.commit()
        session.refresh(notification)
    return notification
