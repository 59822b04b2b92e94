from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Column
from sqlalchemy.types import Enum as SAEnum
from sqlmodel import Field, SQLModel


class LockOutcome(str, Enum):
    withdrawn = "withdrawn"
    married = "married"
    rejected = "rejected"


class Lock(SQLModel, table=True):
    __tablename__ = "lock"

    id: int | None = Field(default=None, primary_key=True)
    one_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    another_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    request_id: int | None = Field(
        default=None,
        foreign_key="request.id",
        nullable=True,
    )
    is_active: bool = Field(default=True, nullable=False, index=True)
    withdrawn_at: datetime | None = Field(default=None, nullable=True)
    withdrawn_by_id: int | None = Field(
        default=None,
        foreign_key="user.id",
        nullable=True,
    )
    reject_requested_by_id: int | None = Field(
        default=None,
        foreign_key="user.id",
        nullable=True,
    )
    reject_requested_at: datetime | None = Field(default=None, nullable=True)
    outcome: LockOutcome | None = Field(
        default=None,
        sa_column=Column(SAEnum(LockOutcome, name="lockoutcome"), nullable=True),
    )
    closed_at: datetime | None = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)

    def has_party(self, user_id: int) -> bool:
        return user_id in (self.one_id, self.another_id)

    def other_party(self, user_id: int) -> int:
        return self.another_id if self.one_id == user_id else self.one_id


class LockOut(SQLModel):
    id: int
    one_id: int
    another_id: int
    is_active: bool
    reject_requested_by_id: int | None = None
    outcome: LockOutcome | None = None
    created_at: datetime
    closed_at: datetime | None = None
