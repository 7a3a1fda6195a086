"""Read side: lists, bucketed statistics and SIP call lookups."""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from janus_events.config import settings
from janus_events.models import (
    DtlsState,
    HandleEvent,
    IceState,
    MediaStats,
    PluginEvent,
    Sdp,
    SelectedPair,
    SipCall,
    Slowlink,
)
from janus_events.schemas.queries import (
    EventsByCallResponse,
    SipCallListItem,
    SipCallResponse,
    SipFlowResponse,
    StatsPoint,
    TimelineEvent,
)
from janus_events.services.sip_flow import call_ladder, handle_ladder, parse_selected_pair
from janus_events.utils.logging import get_logger

logger = get_logger("janus.queries")

BUCKETS = {
    "1s": 1,
    "5s": 5,
    "10s": 10,
    "30s": 30,
    "1m": 60,
    "2m": 120,
    "5m": 300,
    "15m": 900,
}

_AVERAGED = {
    "base": "base",
    "lsr": "lsr",
    "jitterlocal": "jitterlocal",
    "jitterremote": "jitterremote",
    "rtt": "rtt",
    "in_lq": "in_link_quality",
    "in_mlq": "in_media_link_quality",
    "out_lq": "out_link_quality",
    "out_mlq": "out_media_link_quality",
    "bytes_sent_lastsec": "bytes_sent_lastsec",
    "bytes_recv_lastsec": "bytes_recv_lastsec",
}

_SUMMED = (
    "lostlocal",
    "lostremote",
    "packetssent",
    "packetsrecv",
    "bytessent",
    "bytesrecv",
    "nackssent",
    "nacksrecv",
    "retransmissions_recv",
)


def parse_bucket(bucket: Optional[str]) -> int:
    return BUCKETS.get(str(bucket or "1m"), 60)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _avg(values: List[Any]) -> Optional[float]:
    present = [v for v in values if v is not None]
    return sum(present) / len(present) if present else None


def _sum(values: List[Any]) -> Optional[int]:
    present = [v for v in values if v is not None]
    return sum(present) if present else None


def bucket_stats(rows: Sequence[MediaStats], step: int) -> List[StatsPoint]:
    """Aggregate stats rows into ``step``-second buckets, oldest first.

    Gauges are averaged and counters summed; NULLs are skipped like SQL
    AVG/SUM do, and a bucket where every value is NULL yields ``None``.
    """
    buckets: Dict[int, List[MediaStats]] = {}
    for row in rows:
        epoch = as_utc(row.timestamp).timestamp()
        key = int(math.floor(epoch / step) * step)
        buckets.setdefault(key, []).append(row)

    points: List[StatsPoint] = []
    for key in sorted(buckets):
        group = buckets[key]
        averaged = {
            name: _avg([getattr(r, column) for r in group]) for name, column in _AVERAGED.items()
        }
        summed = {name: _sum([getattr(r, name) for r in group]) for name in _SUMMED}
        sent_inst = averaged.pop("bytes_sent_lastsec")
        recv_inst = averaged.pop("bytes_recv_lastsec")
        points.append(
            StatsPoint(
                ts=datetime.fromtimestamp(key, tz=timezone.utc),
                tx_bps=summed["bytessent"] * 8.0 / step if summed["bytessent"] is not None else None,
                rx_bps=summed["bytesrecv"] * 8.0 / step if summed["bytesrecv"] is not None else None,
                tx_bps_inst=sent_inst * 8.0 if sent_inst is not None else None,
                rx_bps_inst=recv_inst * 8.0 if recv_inst is not None else None,
                **averaged,
                **summed,
            )
        )
    return points


class EventQueryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_sessions(self, limit: int = 1000) -> List[int]:
        result = await self.db.execute(
            select(HandleEvent.session)
            .where(HandleEvent.session.is_not(None))
            .distinct()
            .order_by(HandleEvent.session.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_handles(self, session: int, limit: int = 1000) -> List[int]:
        result = await self.db.execute(
            select(HandleEvent.handle)
            .where(HandleEvent.session == session, HandleEvent.handle.is_not(None))
            .distinct()
            .order_by(HandleEvent.handle.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def stats_series(
        self,
        session: int,
        handle: int,
        date_from: datetime,
        date_to: datetime,
        bucket: Optional[str] = "1m",
    ) -> List[StatsPoint]:
        result = await self.db.execute(
            select(MediaStats)
            .where(
                MediaStats.session == session,
                MediaStats.handle == handle,
                MediaStats.timestamp >= as_utc(date_from),
                MediaStats.timestamp <= as_utc(date_to),
            )
            .order_by(MediaStats.timestamp.asc())
        )
        return bucket_stats(result.scalars().all(), parse_bucket(bucket))

    async def _timeline(
        self,
        session: int,
        handle: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[TimelineEvent]:
        def window(model):
            clauses = [model.session == session, model.handle == handle]
            if date_from is not None:
                clauses.append(model.timestamp >= as_utc(date_from))
            if date_to is not None:
                clauses.append(model.timestamp <= as_utc(date_to))
            return clauses

        def query(model):
            stmt = select(model).where(*window(model))
            if limit is not None:
                # at most `limit` newest rows per table
                stmt = stmt.order_by(model.timestamp.desc()).limit(limit)
            return stmt

        events: List[TimelineEvent] = []
        ice = await self.db.execute(query(IceState))
        for row in ice.scalars():
            events.append(TimelineEvent(time=row.timestamp, type="ICE", state=row.state))
        dtls = await self.db.execute(query(DtlsState))
        for row in dtls.scalars():
            events.append(TimelineEvent(time=row.timestamp, type="DTLS", state=row.state))
        sdps = await self.db.execute(query(Sdp))
        for row in sdps.scalars():
            events.append(
                TimelineEvent(
                    time=row.timestamp,
                    type="JSEP",
                    state="offer" if row.offer else "answer",
                    detail=row.sdp[:160] if row.sdp is not None else None,
                )
            )
        return events

    async def recent_events(self, session: int, handle: int, limit: int = 50) -> List[TimelineEvent]:
        events = await self._timeline(session, handle, limit=limit)
        events.sort(key=lambda e: e.time, reverse=True)
        return events[:limit]

    async def _has_table(self, name: str) -> bool:
        def check(sync_session) -> bool:
            return sa_inspect(sync_session.connection()).has_table(name)

        return await self.db.run_sync(check)

    async def get_sip_call(self, call_id: str) -> Optional[SipCallResponse]:
        result = await self.db.execute(select(SipCall).where(SipCall.call_id == call_id))
        call = result.scalar_one_or_none()
        if call is None:
            return None
        return SipCallResponse.model_validate(call, from_attributes=True)

    async def list_sip_calls(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
        limit: int = 200,
    ) -> List[SipCallListItem]:
        latest_pair = (
            select(SelectedPair.selected)
            .where(
                SelectedPair.session == SipCall.session,
                SelectedPair.handle == SipCall.handle,
            )
            .order_by(SelectedPair.timestamp.desc())
            .limit(1)
            .correlate(SipCall)
            .scalar_subquery()
        )
        query = select(SipCall, latest_pair.label("selected"))
        if date_from is not None:
            query = query.where(SipCall.created_at >= as_utc(date_from))
        if date_to is not None:
            query = query.where(SipCall.created_at <= as_utc(date_to))
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    SipCall.call_id.ilike(pattern),
                    SipCall.from_uri.ilike(pattern),
                    SipCall.to_uri.ilike(pattern),
                )
            )
        query = query.order_by(SipCall.created_at.desc()).limit(limit)

        result = await self.db.execute(query)
        items: List[SipCallListItem] = []
        for call, selected in result.all():
            base = SipCallResponse.model_validate(call, from_attributes=True)
            items.append(
                SipCallListItem(**base.model_dump(), selected_pair=parse_selected_pair(selected))
            )
        return items

    async def stats_series_by_call(
        self,
        call_id: str,
        date_from: datetime,
        date_to: datetime,
        bucket: Optional[str] = "1m",
    ) -> List[StatsPoint]:
        call = await self.get_sip_call(call_id)
        if call is None or call.session is None or call.handle is None:
            return []
        return await self.stats_series(call.session, call.handle, date_from, date_to, bucket)

    async def events_by_call(
        self, call_id: str, date_from: datetime, date_to: datetime
    ) -> Optional[EventsByCallResponse]:
        call = await self.get_sip_call(call_id)
        if call is None:
            return None
        events = await self._timeline(call.session, call.handle, date_from, date_to)

        if await self._has_table(Slowlink.__tablename__):
            result = await self.db.execute(
                select(Slowlink).where(
                    Slowlink.session == call.session,
                    Slowlink.handle == call.handle,
                    Slowlink.timestamp >= as_utc(date_from),
                    Slowlink.timestamp <= as_utc(date_to),
                )
            )
            for row in result.scalars():
                events.append(
                    TimelineEvent(time=row.timestamp, type="SLOWLINK", detail=row.payload[:200])
                )
        else:
            logger.debug("slowlinks_table_missing", call_id=call_id)

        events.sort(key=lambda e: e.time)
        return EventsByCallResponse(session=call.session, handle=call.handle, events=events)

    async def _sip_plugin_rows(
        self,
        session: Optional[int],
        handle: Optional[int],
        date_from: Optional[datetime],
        date_to: Optional[datetime],
        limit: int,
    ):
        query = select(PluginEvent.event, PluginEvent.timestamp).where(
            PluginEvent.session == session,
            PluginEvent.handle == handle,
            PluginEvent.plugin == settings.sip_plugin,
        )
        if date_from is not None:
            query = query.where(PluginEvent.timestamp >= as_utc(date_from))
        if date_to is not None:
            query = query.where(PluginEvent.timestamp <= as_utc(date_to))
        query = query.order_by(PluginEvent.timestamp.asc()).limit(limit)
        result = await self.db.execute(query)
        return result.all()

    async def sip_flow_by_call(
        self,
        call_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 2000,
    ) -> Optional[SipFlowResponse]:
        call = await self.get_sip_call(call_id)
        if call is None:
            return None
        rows = await self._sip_plugin_rows(call.session, call.handle, date_from, date_to, limit)
        return SipFlowResponse(
            session=call.session,
            handle=call.handle,
            participants=["Janus", call.to_uri or call.from_uri or "SIP peer"],
            messages=call_ladder(rows, call_id),
        )

    async def sip_flow_by_handle(
        self,
        session: int,
        handle: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 800,
    ) -> SipFlowResponse:
        rows = await self._sip_plugin_rows(session, handle, date_from, date_to, limit)
        return SipFlowResponse(
            session=session,
            handle=handle,
            participants=["Janus", "SIP Peer"],
            messages=handle_ladder(rows),
        )
