from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from matchmaker.core.db import get_session
from matchmaker.models.couple import CoupleOut
from matchmaker.models.user import User
from matchmaker.routers.users import get_current_user, require_user_id
from matchmaker.services.lock_service import couple_for_user

router = APIRouter(prefix="/couples", tags=["couples"])

SessionDep = Annotated[Session, Depends(get_session)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]


@router.get("/me", response_model=CoupleOut)
def read_my_couple(current: CurrentUserDep, session: SessionDep) -> CoupleOut:
    user_id = require_user_id(current)
    couple = couple_for_user(session, user_id)
    if couple is None or couple.id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not married.",
        )
    partner_id = couple.another_id if couple.one_id == user_id else couple.one_id
    return CoupleOut(
        id=couple.id,
        partner_id=partner_id,
        lock_id=couple.lock_id,
        married_date=couple.married_date,
    )
