from __future__ import annotations

from pydantic import BaseModel


class ActionResult(BaseModel):
    """Envelope shared by every request and lock transition."""

    success: bool
    message: str


class RequestPair(BaseModel):
    from_id: int
    to_id: int


class ActingUser(BaseModel):
    user_id: int


class Relationship(BaseModel):
    """Which request actions the viewer can take towards another user."""

    user_id: int
    show_send: bool = False
    show_withdraw: bool = False
    show_accept: bool = False
    show_decline: bool = False
