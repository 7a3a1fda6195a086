import json

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from janus_events.api.webhook import HOOK_PATHS, read_limited_body
from janus_events.config import settings
from janus_events.main import app
from janus_events.schemas.records import RecordKind
from janus_events.services.sequencer import IngestionSequencer
from janus_events.services.sink import MemorySink

SIP_PLUGIN = "janus.plugin.sip"

BATCH = [
    {"type": 1, "timestamp": 1700000000000000, "session_id": 11, "event": {"name": "created"}},
    {
        "type": 2,
        "timestamp": 1700000001000000,
        "session_id": 11,
        "handle_id": 22,
        "event": {"name": "attached", "plugin": SIP_PLUGIN},
    },
    {
        "type": 16,
        "timestamp": 1700000002000000,
        "session_id": 11,
        "handle_id": 22,
        "event": {"ice": "connected", "stream_id": 1, "component_id": 1},
    },
    {
        "type": 64,
        "timestamp": 1700000003000000,
        "session_id": 11,
        "handle_id": 22,
        "event": {
            "plugin": SIP_PLUGIN,
            "data": {
                "event": "incomingcall",
                "call_id": "call-77@pbx",
                "from": "sip:alice@pbx",
                "to": "sip:bob@pbx",
                "direction": "incoming",
            },
        },
    },
]


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def post_json(client, payload, path="/", **kwargs):
    return client.post(
        path,
        content=json.dumps(payload),
        headers={"content-type": "application/json"},
        **kwargs,
    )


@pytest.mark.parametrize("path", HOOK_PATHS)
def test_every_hook_path_accepts_events(client, path):
    response = post_json(client, BATCH[0], path=path)
    assert response.status_code == 204
    assert response.content == b""


def test_batch_is_stored_and_queryable(client):
    response = post_json(client, BATCH)
    assert response.status_code == 204

    assert client.get("/api/sessions").json() == [{"session": 11}]
    assert client.get("/api/handles", params={"session": 11}).json() == [{"handle": 22}]

    call = client.get("/api/sip/call/call-77@pbx")
    assert call.status_code == 200
    body = call.json()
    assert body["session"] == 11
    assert body["handle"] == 22
    assert body["direction"] == "in"
    assert body["from_uri"] == "sip:alice@pbx"

    events = client.get("/api/events/recent", params={"session": 11, "handle": 22}).json()
    assert [e["type"] for e in events] == ["ICE"]
    assert events[0]["state"] == "connected"


def test_unrecognized_events_are_accepted(client):
    response = post_json(client, [{"type": 4096}, "noise", {"type": 16, "event": {}}])
    assert response.status_code == 204


def test_empty_body_is_rejected(client):
    response = client.post("/", content=b"")
    assert response.status_code == 400


def test_invalid_json_is_rejected(client):
    response = client.post("/", content=b"{not json", headers={"content-type": "application/json"})
    assert response.status_code == 400


def test_oversized_body_is_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "max_body_bytes", 64)
    response = post_json(client, BATCH)
    assert response.status_code == 413


def test_auth_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "webhook_username", "janus")
    monkeypatch.setattr(settings, "webhook_password", "s3cret")

    anonymous = post_json(client, BATCH[0])
    assert anonymous.status_code == 401
    assert anonymous.headers["www-authenticate"].startswith("Basic")

    wrong = post_json(client, BATCH[0], auth=("janus", "nope"))
    assert wrong.status_code == 401

    ok = post_json(client, BATCH[0], auth=("janus", "s3cret"))
    assert ok.status_code == 204


def test_health(client):
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/api/health").json() == {"ok": True}


def test_query_validation_and_not_found(client):
    assert client.get("/api/handles").status_code == 400
    assert client.get("/api/events/recent", params={"session": 1}).status_code == 400
    assert client.get("/api/sip/call/unknown").status_code == 404
    assert client.get("/api/sip/flow/by-call", params={"call_id": "unknown"}).status_code == 404
    assert client.get("/api/sip/flow/by-call").status_code == 400


def test_series_by_call_for_unknown_call_is_empty(client):
    response = client.get(
        "/api/stats/series/by-call",
        params={"call_id": "unknown", "from": "2023-11-14T00:00:00Z", "to": "2023-11-15T00:00:00Z"},
    )
    assert response.status_code == 200
    assert response.json() == []


def test_other_post_paths_are_not_allowed(client):
    assert client.post("/not-a-hook", content=b"{}").status_code == 405
    assert client.post("/api/sessions", content=b"{}").status_code == 405
    assert client.get("/api/sessions").status_code == 200


def test_single_event_write_failure_is_a_server_error(client):
    client.app.state.sequencer = IngestionSequencer(
        MemorySink(failing_kinds={RecordKind.SESSION})
    )
    response = post_json(client, BATCH[0])
    assert response.status_code == 500


def test_batch_write_failure_is_still_accepted(client):
    sink = MemorySink(failing_kinds={RecordKind.SESSION})
    client.app.state.sequencer = IngestionSequencer(sink)

    response = post_json(client, BATCH)
    assert response.status_code == 204
    assert [kind for kind, _ in sink.writes] == [
        RecordKind.HANDLE,
        RecordKind.ICE,
        RecordKind.PLUGIN,
        RecordKind.SIP_CALL,
    ]


class ChunkedRequest:
    """Stands in for a request whose body arrives in chunks without a length."""

    def __init__(self, chunks):
        self.chunks = chunks
        self.consumed = 0

    async def stream(self):
        for chunk in self.chunks:
            self.consumed += 1
            yield chunk


@pytest.mark.asyncio
async def test_body_reading_stops_once_over_the_limit():
    request = ChunkedRequest([b"x" * 10] * 10)
    with pytest.raises(HTTPException) as exc_info:
        await read_limited_body(request, 25)
    assert exc_info.value.status_code == 413
    assert request.consumed == 3


@pytest.mark.asyncio
async def test_body_within_limit_is_joined():
    request = ChunkedRequest([b'{"type"', b": 1}"])
    assert await read_limited_body(request, 64) == b'{"type": 1}'
