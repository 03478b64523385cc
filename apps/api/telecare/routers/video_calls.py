"""Video consultation scheduling endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.session import get_session
from ..schemas import video_calls as schemas
from ..services import video_calls as video_calls_service
from ..services.broker import SignalingBroker, get_broker

router = APIRouter()


@router.post("/schedule", response_model=schemas.ScheduleCallResponse, status_code=status.HTTP_201_CREATED)
async def schedule_call(
    payload: schemas.ScheduleCallRequest,
    session: AsyncSession = Depends(get_session),
) -> schemas.ScheduleCallResponse:
    """Schedule a new consultation and return its room identifier."""

    return await video_calls_service.schedule_call(payload, session)


@router.post("/join", response_model=schemas.JoinCallResponse)
async def join_call(
    payload: schemas.JoinCallRequest,
    session: AsyncSession = Depends(get_session),
) -> schemas.JoinCallResponse:
    """Authorize a participant before they open the realtime connection."""

    return await video_calls_service.join_call(payload, session)


@router.post("/end", response_model=schemas.EndCallResponse)
async def end_call(
    payload: schemas.EndCallRequest,
    broker: SignalingBroker = Depends(get_broker),
) -> schemas.EndCallResponse:
    """End a call manually and notify the room."""

    record = await broker.end_call(payload.room_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found")
    return schemas.EndCallResponse(ended_at=record.ended_at)


@router.get("/upcoming/{user_id}", response_model=schemas.UpcomingCallsResponse)
async def upcoming_calls(
    user_id: str,
    session: AsyncSession = Depends(get_session),
) -> schemas.UpcomingCallsResponse:
    """List the user's open calls that have not started yet."""

    return await video_calls_service.list_upcoming(user_id, session)


@router.get("/{room_id}", response_model=schemas.CallDetailsResponse)
async def get_call(
    room_id: str,
    session: AsyncSession = Depends(get_session),
) -> schemas.CallDetailsResponse:
    """Return call details."""

    return await video_calls_service.get_call_details(room_id, session)
