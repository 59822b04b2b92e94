from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from matchmaker.core.db import get_session
from matchmaker.models.lock import LockOut
from matchmaker.models.user import User
from matchmaker.routers.users import get_current_user, require_user_id
from matchmaker.schemas.actions import ActingUser, ActionResult
from matchmaker.services import lock_service

router = APIRouter(prefix="/locks", tags=["locks"])

SessionDep = Annotated[Session, Depends(get_session)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]


@router.get("/current", response_model=LockOut)
def read_current_lock(current: CurrentUserDep, session: SessionDep) -> LockOut:
    lock = lock_service.current_lock(session, current)
    if lock is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active lock.",
        )
    return LockOut.model_validate(lock, from_attributes=True)


@router.get("", response_model=list[LockOut])
def list_my_locks(current: CurrentUserDep, session: SessionDep) -> list[LockOut]:
    locks = lock_service.list_locks_for_user(session, require_user_id(current))
    return [LockOut.model_validate(lock, from_attributes=True) for lock in locks]


@router.post("/{lock_id}/withdraw", response_model=ActionResult)
def withdraw_lock(
    lock_id: int,
    payload: ActingUser,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    return lock_service.withdraw_lock(
        session,
        caller_id=require_user_id(current),
        user_id=payload.user_id,
        lock_id=lock_id,
    )


@router.post("/confirm-request", response_model=ActionResult)
def request_confirm_locked(
    payload: ActingUser,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    """Ask the other side of the caller's lock to confirm the marriage."""
    return lock_service.request_confirm_locked(
        session,
        caller_id=require_user_id(current),
        user_id=payload.user_id,
    )


@router.post("/confirm", response_model=ActionResult)
def confirm_success(
    payload: ActingUser,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    return lock_service.confirm_success(
        session,
        caller_id=require_user_id(current),
        user_id=payload.user_id,
    )


@router.post("/confirm/decline", response_model=ActionResult)
def decline_success(
    payload: ActingUser,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    return lock_service.decline_success(
        session,
        caller_id=require_user_id(current),
        user_id=payload.user_id,
    )


@router.post("/reject-request", response_model=ActionResult)
def request_reject_locked(
    payload: ActingUser,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    return lock_service.request_reject_locked(
        session,
        caller_id=require_user_id(current),
        user_id=payload.user_id,
    )


@router.post("/reject", response_model=ActionResult)
def confirm_reject(
    payload: ActingUser,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    return lock_service.confirm_reject(
        session,
        caller_id=require_user_id(current),
        user_id=payload.user_id,
    )
