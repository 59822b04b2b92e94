from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Column, Index, text
from sqlalchemy.types import Enum as SAEnum
from sqlmodel import Field, SQLModel


class RequestStatus(str, Enum):
    asked = "asked"
    accepted = "accepted"
    declined = "declined"
    withdrawn = "withdrawn"


class Request(SQLModel, table=True):
    __tablename__ = "request"
    __table_args__ = (
        # at most one open request per ordered pair
        Index(
            "uq_request_open_pair",
            "from_id",
            "to_id",
            unique=True,
            sqlite_where=text("status = 'asked'"),
            postgresql_where=text("status = 'asked'"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    from_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    to_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    status: RequestStatus = Field(
        default=RequestStatus.asked,
        sa_column=Column(
            SAEnum(RequestStatus, name="requeststatus"),
            nullable=False,
            server_default="asked",
        ),
    )
    asked_date: date = Field(default_factory=date.today, nullable=False)
    approved_date: date | None = Field(default=None, nullable=True)
    rejected_date: date | None = Field(default=None, nullable=True)
    withdraw_date: date | None = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class RequestOut(SQLModel):
    id: int
    from_id: int
    to_id: int
    status: RequestStatus
    asked_date: date
    approved_date: date | None = None
    rejected_date: date | None = None
    withdraw_date: date | None = None
