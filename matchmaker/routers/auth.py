from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from matchmaker.core.config import settings
from matchmaker.core.db import get_session
from matchmaker.core.security import (
    create_access_token,
    hash_password,
    verify_password,
)
from matchmaker.models.user import User
from matchmaker.schemas.auth import LoginRequest, SignupRequest, TokenResponse
from matchmaker.services.subscription import grant_trial

router = APIRouter(prefix="/auth", tags=["auth"])

SessionDep = Annotated[Session, Depends(get_session)]


@router.post("/signup", response_model=TokenResponse)
def signup(payload: SignupRequest, session: SessionDep) -> TokenResponse:
    statement = select(User).where(User.email == payload.email)
    exists = session.exec(statement).first()
    if exists:
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=payload.email,
        name=payload.name.strip(),
        password_hash=hash_password(payload.password),
    )
    grant_trial(user, settings.trial_subscription_days)
    session.add(user)
    session.commit()
    session.refresh(user)
    return TokenResponse(access_token=create_access_token(sub=user.email))


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, session: SessionDep) -> TokenResponse:
    statement = select(User).where(User.email == payload.email)
    user = session.exec(statement).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    return TokenResponse(access_token=create_access_token(sub=user.email))
