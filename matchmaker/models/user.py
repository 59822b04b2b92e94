from __future__ import annotations

from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import Column, ForeignKey, Integer
from sqlalchemy.types import Enum as SAEnum
from sqlmodel import Field, SQLModel


class UserStatus(str, Enum):
    available = "available"
    locked = "locked"
    # phase 1 of the marriage handshake: waiting for the counterpart
    mark_married = "mark_married"
    married = "married"


# statuses in which user.lock_id must be set
LINKED_STATUSES = frozenset({UserStatus.locked, UserStatus.mark_married})


class User(SQLModel, table=True):
    __tablename__ = "user"
    __table_args__ = (sa.UniqueConstraint("email", name="uq_user_email"),)

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(index=True)
    name: str = Field(nullable=False)
    password_hash: str
    status: UserStatus = Field(
        default=UserStatus.available,
        sa_column=Column(
            SAEnum(UserStatus, name="userstatus"),
            nullable=False,
            server_default="available",
        ),
    )
    # user <-> lock is a foreign key cycle; this side is added after both tables
    lock_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("lock.id", use_alter=True, name="fk_user_lock_id"),
            nullable=True,
            index=True,
        ),
    )
    subscription_expires_at: datetime | None = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class UserOut(SQLModel):
    id: int
    name: str
    status: UserStatus
    lock_id: int | None = None
    locked_with: int | None = None
    has_active_subscription: bool = False
