"""Read-only API used by the monitoring dashboard."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from janus_events.database import get_db
from janus_events.schemas.queries import (
    EventsByCallResponse,
    HandleItem,
    SessionItem,
    SipCallListItem,
    SipCallResponse,
    SipFlowResponse,
    StatsPoint,
    TimelineEvent,
)
from janus_events.services.query_service import EventQueryService
from janus_events.utils.logging import get_logger

router = APIRouter(prefix="/api", tags=["Queries"])
logger = get_logger("api.queries")


def get_query_service(db: AsyncSession = Depends(get_db)) -> EventQueryService:
    return EventQueryService(db)


def _db_error(event: str, e: Exception) -> HTTPException:
    logger.error(event, error=str(e), error_type=type(e).__name__)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="db_error")


def _missing(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Missing {what}")


@router.get("/sessions", response_model=List[SessionItem])
async def list_sessions(service: EventQueryService = Depends(get_query_service)):
    """Sessions that attached at least one handle, newest first."""
    try:
        return [SessionItem(session=s) for s in await service.list_sessions()]
    except SQLAlchemyError as e:
        raise _db_error("sessions_query_failed", e)


@router.get("/handles", response_model=List[HandleItem])
async def list_handles(
    session: Optional[int] = None,
    service: EventQueryService = Depends(get_query_service),
):
    if session is None:
        raise _missing("session")
    try:
        return [HandleItem(handle=h) for h in await service.list_handles(session)]
    except SQLAlchemyError as e:
        raise _db_error("handles_query_failed", e)


@router.get("/stats/series", response_model=List[StatsPoint])
async def stats_series(
    session: Optional[int] = None,
    handle: Optional[int] = None,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    bucket: str = "1m",
    service: EventQueryService = Depends(get_query_service),
):
    """Media statistics for one handle aggregated into time buckets."""
    if session is None or handle is None or date_from is None or date_to is None:
        raise _missing("session/handle/from/to")
    try:
        return await service.stats_series(session, handle, date_from, date_to, bucket)
    except SQLAlchemyError as e:
        raise _db_error("stats_series_query_failed", e)


@router.get("/events/recent", response_model=List[TimelineEvent])
async def recent_events(
    session: Optional[int] = None,
    handle: Optional[int] = None,
    limit: int = Query(50, ge=1),
    service: EventQueryService = Depends(get_query_service),
):
    if session is None or handle is None:
        raise _missing("session/handle")
    try:
        return await service.recent_events(session, handle, min(limit, 500))
    except SQLAlchemyError as e:
        raise _db_error("recent_events_query_failed", e)


@router.get("/sip/calls", response_model=List[SipCallListItem])
async def list_sip_calls(
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    search: Optional[str] = None,
    limit: int = Query(200, ge=1),
    service: EventQueryService = Depends(get_query_service),
):
    """SIP calls with the last ICE pair selected on their handle."""
    try:
        return await service.list_sip_calls(date_from, date_to, search, min(limit, 1000))
    except SQLAlchemyError as e:
        raise _db_error("sip_calls_query_failed", e)


@router.get("/sip/call/{call_id:path}", response_model=SipCallResponse)
async def get_sip_call(call_id: str, service: EventQueryService = Depends(get_query_service)):
    try:
        call = await service.get_sip_call(call_id)
    except SQLAlchemyError as e:
        raise _db_error("sip_call_query_failed", e)
    if call is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
    return call


@router.get("/stats/series/by-call", response_model=List[StatsPoint])
async def stats_series_by_call(
    call_id: Optional[str] = None,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    bucket: str = "1m",
    service: EventQueryService = Depends(get_query_service),
):
    if not call_id or date_from is None or date_to is None:
        raise _missing("call_id/from/to")
    try:
        return await service.stats_series_by_call(call_id, date_from, date_to, bucket)
    except SQLAlchemyError as e:
        raise _db_error("series_by_call_query_failed", e)


@router.get("/events/by-call", response_model=EventsByCallResponse)
async def events_by_call(
    call_id: Optional[str] = None,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    service: EventQueryService = Depends(get_query_service),
):
    """ICE/DTLS/JSEP flags, plus slowlinks where recorded, for a call's handle."""
    if not call_id or date_from is None or date_to is None:
        raise _missing("call_id/from/to")
    try:
        response = await service.events_by_call(call_id, date_from, date_to)
    except SQLAlchemyError as e:
        raise _db_error("events_by_call_query_failed", e)
    if response is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
    return response


@router.get("/sip/flow/by-call", response_model=SipFlowResponse)
async def sip_flow_by_call(
    call_id: Optional[str] = None,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    limit: int = Query(2000, ge=1),
    service: EventQueryService = Depends(get_query_service),
):
    """SIP ladder of one dialog."""
    if not call_id:
        raise _missing("call_id")
    try:
        response = await service.sip_flow_by_call(call_id, date_from, date_to, min(limit, 10000))
    except SQLAlchemyError as e:
        raise _db_error("sip_flow_by_call_query_failed", e)
    if response is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
    return response


@router.get("/sip/flow/by-sh", response_model=SipFlowResponse)
async def sip_flow_by_handle(
    session: Optional[int] = None,
    handle: Optional[int] = None,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    limit: int = Query(800, ge=1),
    service: EventQueryService = Depends(get_query_service),
):
    if session is None or handle is None:
        raise _missing("session/handle")
    try:
        return await service.sip_flow_by_handle(
            session, handle, date_from, date_to, min(limit, 5000)
        )
    except SQLAlchemyError as e:
        raise _db_error("sip_flow_by_sh_query_failed", e)
