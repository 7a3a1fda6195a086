import pytest

from janus_events.schemas.records import RecordKind
from janus_events.services.classifier import EventClassifier
from janus_events.services.sequencer import IngestionSequencer
from janus_events.services.sink import MemorySink
from janus_events.utils.exceptions import PersistenceError

SIP_PLUGIN = "janus.plugin.sip"

SESSION = {"type": 1, "timestamp": 1700000000000000, "session_id": 1, "event": {"name": "created"}}
HANDLE = {
    "type": 2,
    "timestamp": 1700000001000000,
    "session_id": 1,
    "handle_id": 2,
    "event": {"name": "attached", "plugin": SIP_PLUGIN},
}
JSEP = {
    "type": 8,
    "timestamp": 1700000002000000,
    "session_id": 1,
    "handle_id": 2,
    "event": {"owner": "local", "jsep": {"type": "offer", "sdp": "v=0"}},
}


def make_sequencer(sink):
    return IngestionSequencer(sink, EventClassifier(sip_plugin=SIP_PLUGIN))


@pytest.mark.asyncio
async def test_batch_is_persisted_in_array_order(memory_sink):
    result = await make_sequencer(memory_sink).ingest([SESSION, HANDLE, JSEP])

    assert [kind for kind, _ in memory_sink.writes] == [
        RecordKind.SESSION,
        RecordKind.HANDLE,
        RecordKind.JSEP,
    ]
    assert result.received == 3
    assert result.processed == 3
    assert result.failed == 0
    assert result.records_written == 3


@pytest.mark.asyncio
async def test_failing_batch_element_does_not_stop_the_rest():
    sink = MemorySink(failing_kinds={RecordKind.HANDLE})
    result = await make_sequencer(sink).ingest([SESSION, HANDLE, JSEP])

    assert [kind for kind, _ in sink.writes] == [RecordKind.SESSION, RecordKind.JSEP]
    assert result.failed == 1
    assert result.processed == 2


@pytest.mark.asyncio
async def test_single_event_failure_propagates():
    sink = MemorySink(failing_kinds={RecordKind.HANDLE})
    with pytest.raises(PersistenceError):
        await make_sequencer(sink).ingest(HANDLE)


@pytest.mark.asyncio
async def test_unrecognized_events_are_counted_not_written(memory_sink):
    result = await make_sequencer(memory_sink).ingest(
        [{"type": 4096, "event": {}}, {"type": 16, "event": {}}, "noise", SESSION]
    )
    assert result.received == 4
    assert result.unrecognized == 2
    assert [kind for kind, _ in memory_sink.writes] == [RecordKind.SESSION]


@pytest.mark.asyncio
async def test_non_object_payload_is_ignored(memory_sink):
    result = await make_sequencer(memory_sink).ingest(42)
    assert result.received == 0
    assert memory_sink.writes == []


@pytest.mark.asyncio
async def test_timestamps_are_normalized(memory_sink):
    await make_sequencer(memory_sink).ingest(SESSION)
    (values,) = memory_sink.records(RecordKind.SESSION)
    assert values["timestamp"].isoformat() == "2023-11-14T22:13:20+00:00"


@pytest.mark.asyncio
async def test_missing_slowlinks_table_is_tolerated():
    sink = MemorySink(missing_tables={"slowlinks"})
    event = {
        "type": 64,
        "session_id": 1,
        "handle_id": 2,
        "event": {"plugin": "janus.plugin.videoroom", "data": {"slowlink": {"uplink": True}}},
    }
    result = await make_sequencer(sink).ingest(event)

    assert [kind for kind, _ in sink.writes] == [RecordKind.PLUGIN]
    assert result.optional_skipped == 1
    assert result.processed == 1


@pytest.mark.asyncio
async def test_slowlink_written_after_primary_record(memory_sink):
    event = {"type": 256, "event": {"status": "running", "slowlink": {"nacks": 10}}}
    result = await make_sequencer(memory_sink).ingest(event)

    assert [kind for kind, _ in memory_sink.writes] == [RecordKind.CORE, RecordKind.SLOWLINK]
    assert result.records_written == 2


@pytest.mark.asyncio
async def test_sip_plugin_event_is_correlated(memory_sink):
    event = {
        "type": 64,
        "session_id": 1,
        "handle_id": 2,
        "event": {
            "plugin": SIP_PLUGIN,
            "data": {"event": "incomingcall", "call_id": "abc@pbx", "from": "sip:alice@pbx", "direction": "incoming"},
        },
    }
    result = await make_sequencer(memory_sink).ingest(event)

    assert [kind for kind, _ in memory_sink.writes] == [RecordKind.PLUGIN, RecordKind.SIP_CALL]
    assert result.sip_correlated == 1
    assert memory_sink.sip_calls["abc@pbx"]["direction"] == "in"


@pytest.mark.asyncio
async def test_sip_correlation_failure_fails_the_event():
    sink = MemorySink(failing_kinds={RecordKind.SIP_CALL})
    event = {
        "type": 64,
        "session_id": 1,
        "handle_id": 2,
        "event": {"plugin": SIP_PLUGIN, "data": {"call_id": "abc@pbx"}},
    }
    result = await make_sequencer(sink).ingest([event])

    assert [kind for kind, _ in sink.writes] == [RecordKind.PLUGIN]
    assert result.failed == 1
