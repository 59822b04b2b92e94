from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Index, desc
from sqlalchemy.types import Enum as SAEnum
from sqlmodel import Field, SQLModel


class NotificationKind(str, Enum):
    request_received = "request_received"
    request_accepted = "request_accepted"
    confirm_success_requested = "confirm_success_requested"
    success_declined = "success_declined"
    married = "married"
    confirm_reject_requested = "confirm_reject_requested"
    lock_rejected = "lock_rejected"
    lock_withdrawn = "lock_withdrawn"


class Notification(SQLModel, table=True):
    __tablename__ = "notification"
    __table_args__ = (
        Index(
            "ix_notification_user_id_created_at_desc",
            "user_id",
            desc("created_at"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    kind: NotificationKind = Field(
        sa_column=Column(
            SAEnum(NotificationKind, name="notificationkind"),
            nullable=False,
        ),
    )
    from_user_id: int = Field(foreign_key="user.id", nullable=False)
    lock_id: int | None = Field(default=None, foreign_key="lock.id", nullable=True)
    request_id: int | None = Field(
        default=None,
        foreign_key="request.id",
        nullable=True,
    )
    is_read: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class NotificationOut(SQLModel):
    id: int
    kind: NotificationKind
    from_user_id: int
    lock_id: int | None = None
    request_id: int | None = None
    is_read: bool
    created_at: datetime
