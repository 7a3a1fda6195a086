import json
from datetime import datetime, timedelta, timezone

from janus_events.services.sip_flow import (
    belongs_to_call,
    call_ladder,
    decode_plugin_event,
    handle_ladder,
    parse_selected_pair,
    parse_sip_raw,
)

TS = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

INVITE = (
    "INVITE sip:bob@pbx.example SIP/2.0\r\n"
    "From: <sip:alice@pbx.example>;tag=1\r\n"
    "To: <sip:bob@pbx.example>\r\n"
    "Call-ID: dialog-1@pbx\r\n"
    "CSeq: 1 INVITE\r\n"
    "\r\n"
)
RINGING = (
    "SIP/2.0 180 Ringing\r\n"
    "From: <sip:alice@pbx.example>;tag=1\r\n"
    "To: <sip:bob@pbx.example>;tag=2\r\n"
    "Call-ID: dialog-1@pbx\r\n"
    "CSeq: 1 INVITE\r\n"
)


def test_parse_selected_pair():
    info = parse_selected_pair("10.0.0.1:5000 [host,udp] <-> 198.51.100.7:6000 [srflx,udp]")
    assert info.local == "10.0.0.1:5000"
    assert info.local_type == "host"
    assert info.remote == "198.51.100.7:6000"
    assert info.remote_type == "srflx"
    assert info.remote_proto == "udp"


def test_parse_selected_pair_unparseable_or_missing():
    assert parse_selected_pair("garbage").selected == "garbage"
    assert parse_selected_pair("garbage").local is None
    assert parse_selected_pair(None).selected is None


def test_parse_request():
    parsed = parse_sip_raw(INVITE)
    assert parsed["method"] == "INVITE"
    assert parsed["code"] is None
    assert parsed["from_uri"] == "<sip:alice@pbx.example>;tag=1"
    assert parsed["to_uri"] == "<sip:bob@pbx.example>"
    assert parsed["cseq"] == "1 INVITE"


def test_parse_response():
    parsed = parse_sip_raw(RINGING)
    assert parsed["method"] is None
    assert parsed["code"] == 180
    assert parsed["reason"] == "Ringing"


def test_parse_nothing():
    assert parse_sip_raw(None)["method"] is None
    assert parse_sip_raw("")["code"] is None


def test_decode_plugin_event():
    assert decode_plugin_event('{"event": "sip-in"}') == {"event": "sip-in"}
    assert decode_plugin_event("null") is None
    assert decode_plugin_event("{not json") is None
    assert decode_plugin_event({"a": 1}) == {"a": 1}


def test_belongs_to_call():
    assert belongs_to_call({"call-id": "dialog-1@pbx"}, "dialog-1@pbx")
    assert belongs_to_call({"sip": INVITE}, "dialog-1@pbx")
    assert not belongs_to_call({"sip": INVITE}, "dialog-1")
    assert not belongs_to_call({"event": "registered"}, "dialog-1@pbx")


def test_call_ladder_filters_and_labels():
    rows = [
        (json.dumps({"event": "sip-out", "sip": INVITE}), TS),
        (json.dumps({"event": "sip-in", "sip": RINGING}), TS + timedelta(seconds=1)),
        (json.dumps({"event": "sip-in", "sip": INVITE.replace("dialog-1", "dialog-2")}), TS),
        (json.dumps({"event": "hangup", "call-id": "dialog-1@pbx"}), TS + timedelta(seconds=2)),
        ("not json", TS),
    ]
    messages = call_ladder(rows, "dialog-1@pbx")

    assert [m.label for m in messages] == ["INVITE", "SIP/2.0 180 Ringing", "hangup"]
    assert [m.dir for m in messages] == ["out", "in", "in"]
    assert messages[0].cseq == "1 INVITE"
    assert messages[2].cseq == "call-id:dialog-1@pbx"


def test_handle_ladder():
    rows = [
        (json.dumps({"sip": INVITE, "direction": "incoming"}), TS),
        (json.dumps({"sip": RINGING}), TS + timedelta(seconds=1)),
        (json.dumps({"event": "registered"}), TS + timedelta(seconds=2)),
    ]
    messages = handle_ladder(rows)

    assert [(m.label, m.kind, m.dir) for m in messages] == [
        ("INVITE", "request", "in"),
        ("180 Ringing", "response", "out"),
        ("SIP", "response", "out"),
    ]
    assert messages[0].from_uri == "<sip:alice@pbx.example>;tag=1"
    assert messages[1].ts == TS + timedelta(seconds=1)
