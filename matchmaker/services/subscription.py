from __future__ import annotations

from datetime import datetime, timedelta

from fastapi import HTTPException, status

from matchmaker.models.user import User


def has_active_subscription(user: User, now: datetime | None = None) -> bool:
    expires_at = user.subscription_expires_at
    if expires_at is None:
        return False
    return expires_at > (now or datetime.utcnow())


def require_active_subscription(user: User) -> None:
    if not has_active_subscription(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="An active subscription is required.",
        )


def grant_trial(user: User, days: int, now: datetime | None = None) -> None:
    if days <= 0:
        return
    user.subscription_expires_at = (now or datetime.utcnow()) + timedelta(days=days)
