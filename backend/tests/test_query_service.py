from datetime import datetime, timedelta, timezone

import pytest

from janus_events.database import build_session_maker
from janus_events.models import MediaStats
from janus_events.schemas.records import (
    DtlsRecord,
    HandleEventRecord,
    IceRecord,
    JsepRecord,
    PluginEventRecord,
    SelectedPairRecord,
    SlowlinkRecord,
    StatsRecord,
)
from janus_events.services.classifier import serialize
from janus_events.services.query_service import EventQueryService, bucket_stats, parse_bucket
from janus_events.services.sink import SqlAlchemySink
from janus_events.services.sip_correlator import SipCorrelator

TS = datetime(2023, 11, 14, 22, 13, 0, tzinfo=timezone.utc)
SIP_PLUGIN = "janus.plugin.sip"
PAIR = "10.0.0.1:5000 [host,udp] <-> 198.51.100.7:6000 [srflx,udp]"


def test_parse_bucket():
    assert parse_bucket("5s") == 5
    assert parse_bucket("15m") == 900
    assert parse_bucket(None) == 60
    assert parse_bucket("3h") == 60


def test_bucket_stats_averages_and_sums():
    rows = [
        MediaStats(timestamp=TS, rtt=10.0, bytessent=1000, bytes_sent_lastsec=100),
        MediaStats(timestamp=TS + timedelta(seconds=30), rtt=20.0, bytessent=3000),
        MediaStats(timestamp=TS + timedelta(seconds=61), rtt=None, bytessent=None),
    ]
    points = bucket_stats(rows, 60)

    assert [p.ts for p in points] == [TS, TS + timedelta(minutes=1)]
    first, second = points
    assert first.rtt == 15.0
    assert first.bytessent == 4000
    assert first.tx_bps == 4000 * 8.0 / 60
    assert first.tx_bps_inst == 800.0
    assert second.rtt is None
    assert second.bytessent is None
    assert second.tx_bps is None


async def seed_call(sink):
    await sink.insert(HandleEventRecord(session=1, handle=2, event="attached", plugin=SIP_PLUGIN, timestamp=TS))
    await sink.insert(HandleEventRecord(session=1, handle=3, event="attached", plugin=SIP_PLUGIN, timestamp=TS))
    await sink.insert(HandleEventRecord(session=9, handle=10, event="attached", plugin=SIP_PLUGIN, timestamp=TS))
    await sink.insert(IceRecord(session=1, handle=2, stream=1, component=1, state="connected", timestamp=TS + timedelta(seconds=1)))
    await sink.insert(DtlsRecord(session=1, handle=2, state="connected", timestamp=TS + timedelta(seconds=2)))
    await sink.insert(JsepRecord(session=1, handle=2, remote=True, offer=True, sdp="v=0", timestamp=TS))
    await sink.insert(SelectedPairRecord(session=1, handle=2, selected="old", timestamp=TS))
    await sink.insert(SelectedPairRecord(session=1, handle=2, selected=PAIR, timestamp=TS + timedelta(seconds=3)))
    await sink.insert(StatsRecord(session=1, handle=2, base=48000, rtt=30.0, bytesrecv=600, timestamp=TS + timedelta(seconds=5)))
    await sink.insert_optional(SlowlinkRecord(session=1, handle=2, payload='{"slowlink": 1}', timestamp=TS + timedelta(seconds=4)))

    invite = "INVITE sip:bob@pbx SIP/2.0\r\nCall-ID: call-1\r\nCSeq: 1 INVITE\r\n"
    data = {"event": "sip-in", "sip": invite}
    await sink.insert(PluginEventRecord(session=1, handle=2, plugin=SIP_PLUGIN, event=serialize(data), timestamp=TS))
    await SipCorrelator(sink).correlate(
        1, 2, {"call_id": "call-1", "from": "sip:alice@pbx", "to": "sip:bob@pbx", "direction": "incoming"}, TS
    )


@pytest.mark.asyncio
async def test_sessions_and_handles(sql_sink, session_maker):
    await seed_call(sql_sink)
    async with session_maker() as db:
        service = EventQueryService(db)
        assert await service.list_sessions() == [9, 1]
        assert await service.list_handles(1) == [3, 2]


@pytest.mark.asyncio
async def test_recent_events_newest_first(sql_sink, session_maker):
    await seed_call(sql_sink)
    async with session_maker() as db:
        events = await EventQueryService(db).recent_events(1, 2)
    assert [e.type for e in events] == ["DTLS", "ICE", "JSEP"]
    assert events[2].state == "offer"
    assert events[0].time.tzinfo is not None


@pytest.mark.asyncio
async def test_sip_call_lookup_and_listing(sql_sink, session_maker):
    await seed_call(sql_sink)
    async with session_maker() as db:
        service = EventQueryService(db)
        call = await service.get_sip_call("call-1")
        missing = await service.get_sip_call("nope")
        listed = await service.list_sip_calls(search="alice")
        none_listed = await service.list_sip_calls(search="carol")

    assert missing is None
    assert (call.session, call.handle, call.direction) == (1, 2, "in")
    assert call.created_at == TS
    assert len(listed) == 1
    assert listed[0].selected_pair.selected == PAIR
    assert listed[0].selected_pair.remote_type == "srflx"
    assert none_listed == []


@pytest.mark.asyncio
async def test_stats_and_events_by_call(sql_sink, session_maker):
    await seed_call(sql_sink)
    window = (TS - timedelta(minutes=1), TS + timedelta(minutes=1))
    async with session_maker() as db:
        service = EventQueryService(db)
        series = await service.stats_series_by_call("call-1", *window, bucket="10s")
        unknown_series = await service.stats_series_by_call("nope", *window)
        timeline = await service.events_by_call("call-1", *window)
        unknown_timeline = await service.events_by_call("nope", *window)

    assert len(series) == 1
    assert series[0].rtt == 30.0
    assert series[0].rx_bps == 600 * 8.0 / 10
    assert unknown_series == []
    assert unknown_timeline is None
    assert [e.type for e in timeline.events] == ["JSEP", "ICE", "DTLS", "SLOWLINK"]


@pytest.mark.asyncio
async def test_events_by_call_without_slowlinks_table(engine_without_optional):
    session_maker = build_session_maker(engine_without_optional)
    sink = SqlAlchemySink(session_maker)
    await SipCorrelator(sink).correlate(1, 2, {"call_id": "call-9"}, TS)
    await sink.insert(DtlsRecord(session=1, handle=2, state="trying", timestamp=TS))

    async with session_maker() as db:
        timeline = await EventQueryService(db).events_by_call(
            "call-9", TS - timedelta(minutes=1), TS + timedelta(minutes=1)
        )
    assert [e.type for e in timeline.events] == ["DTLS"]


@pytest.mark.asyncio
async def test_sip_flows(sql_sink, session_maker):
    await seed_call(sql_sink)
    async with session_maker() as db:
        service = EventQueryService(db)
        by_call = await service.sip_flow_by_call("call-1")
        by_handle = await service.sip_flow_by_handle(1, 2)
        unknown = await service.sip_flow_by_call("nope")

    assert unknown is None
    assert by_call.participants == ["Janus", "sip:bob@pbx"]
    assert [(m.label, m.dir, m.cseq) for m in by_call.messages] == [("INVITE", "in", "1 INVITE")]
    assert by_handle.participants == ["Janus", "SIP Peer"]
    assert [m.label for m in by_handle.messages] == ["INVITE"]


@pytest.mark.asyncio
async def test_recent_events_limit_spans_tables(sql_sink, session_maker):
    for i in range(5):
        await sql_sink.insert(IceRecord(session=4, handle=5, state=f"ice-{i}", timestamp=TS + timedelta(seconds=2 * i)))
        await sql_sink.insert(DtlsRecord(session=4, handle=5, state=f"dtls-{i}", timestamp=TS + timedelta(seconds=2 * i + 1)))

    async with session_maker() as db:
        events = await EventQueryService(db).recent_events(4, 5, limit=3)

    assert [e.state for e in events] == ["dtls-4", "ice-4", "dtls-3"]
