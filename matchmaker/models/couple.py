from __future__ import annotations

from datetime import date, datetime

from sqlmodel import Field, SQLModel


class Couple(SQLModel, table=True):
    __tablename__ = "couple"

    id: int | None = Field(default=None, primary_key=True)
    one_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    another_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    lock_id: int = Field(foreign_key="lock.id", nullable=False, unique=True)
    married_date: date = Field(default_factory=date.today, nullable=False)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class CoupleOut(SQLModel):
    id: int
    partner_id: int
    lock_id: int
    married_date: date
