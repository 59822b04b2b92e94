from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from sqlmodel import Session

from matchmaker.core.db import get_session
from matchmaker.models.notification import NotificationOut
from matchmaker.models.user import User
from matchmaker.routers.users import get_current_user, require_user_id
from matchmaker.services.notification_service import list_notifications, mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])

SessionDep = Annotated[Session, Depends(get_session)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]


@router.get("", response_model=list[NotificationOut])
def list_my_notifications(
    current: CurrentUserDep,
    session: SessionDep,
    response: Response,
    unread: Annotated[bool, Query()] = False,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[NotificationOut]:
    total_count, notifications = list_notifications(
        session,
        require_user_id(current),
        limit=limit,
        offset=offset,
        unread_only=unread,
    )
    response.headers["X-Total-Count"] = str(total_count)
    return [
        NotificationOut.model_validate(n, from_attributes=True) for n in notifications
    ]


@router.post("/{notification_id}/read", response_model=NotificationOut)
def read_notification(
    notification_id: int,
    current: CurrentUserDep,
    session: SessionDep,
) -> NotificationOut:
    notification = mark_read(session, notification_id, require_user_id(current))
    return NotificationOut.model_validate(notification, from_attributes=True)
