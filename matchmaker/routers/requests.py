from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from sqlmodel import Session

from matchmaker.core.db import get_session
from matchmaker.models.request import RequestOut, RequestStatus
from matchmaker.models.user import User
from matchmaker.routers.users import get_current_user, require_user_id
from matchmaker.schemas.actions import ActionResult, RequestPair
from matchmaker.services import request_service
from matchmaker.services.request_service import Direction

router = APIRouter(prefix="/requests", tags=["requests"])

SessionDep = Annotated[Session, Depends(get_session)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]


@router.post("", response_model=ActionResult)
def create_request(
    payload: RequestPair,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    return request_service.create_request(
        session,
        caller_id=require_user_id(current),
        from_id=payload.from_id,
        to_id=payload.to_id,
    )


@router.post("/withdraw", response_model=ActionResult)
def withdraw_request(
    payload: RequestPair,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    return request_service.withdraw_request(
        session,
        caller_id=require_user_id(current),
        from_id=payload.from_id,
        to_id=payload.to_id,
    )


@router.post("/accept", response_model=ActionResult)
def accept_request(
    payload: RequestPair,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    """Accept a request sent to the caller; locks both users together."""
    return request_service.accept_request(
        session,
        caller_id=require_user_id(current),
        to_id=payload.to_id,
        from_id=payload.from_id,
    )


@router.post("/decline", response_model=ActionResult)
def decline_request(
    payload: RequestPair,
    current: CurrentUserDep,
    session: SessionDep,
) -> ActionResult:
    return request_service.decline_request(
        session,
        caller_id=require_user_id(current),
        to_id=payload.to_id,
        from_id=payload.from_id,
    )


@router.get("", response_model=list[RequestOut])
def list_my_requests(
    current: CurrentUserDep,
    session: SessionDep,
    response: Response,
    direction: Annotated[Direction, Query()] = Direction.incoming,
    status: Annotated[
        RequestStatus | None,
        Query(description="Filter by status (asked, accepted, declined, withdrawn)"),
    ] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[RequestOut]:
    total_count, requests = request_service.list_requests(
        session,
        require_user_id(current),
        direction=direction,
        status=status,
        limit=limit,
        offset=offset,
    )
    response.headers["X-Total-Count"] = str(total_count)
    return [RequestOut.model_validate(r, from_attributes=True) for r in requests]
