from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session, select

from matchmaker.core.db import get_session
from matchmaker.core.security import decode_token
from matchmaker.models.user import User, UserOut
from matchmaker.schemas.actions import Relationship
from matchmaker.services.account_store import counterpart_id
from matchmaker.services.request_service import relationship_with
from matchmaker.services.subscription import has_active_subscription

router = APIRouter(prefix="/users", tags=["users"])
bearer = HTTPBearer()

SessionDep = Annotated[Session, Depends(get_session)]
CredentialsDep = Annotated[HTTPAuthorizationCredentials, Depends(bearer)]


def get_current_user(creds: CredentialsDep, session: SessionDep) -> User:
    try:
        payload = decode_token(creds.credentials)
    except Exception as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from err

    email = payload.get("sub")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    statement = select(User).where(User.email == email)
    user = session.exec(statement).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def require_user_id(user: User) -> int:
    if user.id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="authenticated user missing identifier",
        )
    return user.id


def _serialize_user(session: Session, user: User) -> UserOut:
    user_id = require_user_id(user)
    return UserOut(
        id=user_id,
        name=user.name,
        status=user.status,
        lock_id=user.lock_id,
        locked_with=counterpart_id(session, user),
        has_active_subscription=has_active_subscription(user),
    )


@router.get("/me", response_model=UserOut)
def read_me(current: CurrentUserDep, session: SessionDep) -> UserOut:
    return _serialize_user(session, current)


@router.get("/{user_id}", response_model=UserOut)
def read_user(user_id: int, current: CurrentUserDep, session: SessionDep) -> UserOut:
    user = session.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )
    return _serialize_user(session, user)


@router.get("/{user_id}/relationship", response_model=Relationship)
def read_relationship(
    user_id: int,
    current: CurrentUserDep,
    session: SessionDep,
) -> Relationship:
    """Which request buttons the caller should see on another user's profile."""
    return relationship_with(session, require_user_id(current), user_id)
