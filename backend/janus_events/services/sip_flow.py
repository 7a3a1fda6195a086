"""Parsing helpers for SIP ladders and ICE selected pairs."""

import json
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from janus_events.schemas.queries import SelectedPairInfo, SipMessage

# "1.2.3.4:5000 [host,udp] <-> 5.6.7.8:6000 [srflx,udp]"
SELECTED_PAIR_RE = re.compile(
    r"^\s*([^ ]+)\s+\[([^,]+),([^\]]+)\]\s+<->\s+([^ ]+)\s+\[([^,]+),([^\]]+)\]"
)
STATUS_LINE_RE = re.compile(r"^SIP/2\.0\s+(\d{3})\s*(.*)$", re.IGNORECASE)
REQUEST_LINE_RE = re.compile(r"^([A-Z]+)\s+(\S+)\s+SIP/2\.0$")
CSEQ_RE = re.compile(r"^\s*CSeq:\s*([^\r\n]+)", re.IGNORECASE | re.MULTILINE)


def parse_selected_pair(selected: Optional[str]) -> SelectedPairInfo:
    if not selected:
        return SelectedPairInfo()
    match = SELECTED_PAIR_RE.match(selected)
    if not match:
        return SelectedPairInfo(selected=selected)
    local, local_type, local_proto, remote, remote_type, remote_proto = match.groups()
    return SelectedPairInfo(
        selected=selected,
        local=local,
        local_type=local_type,
        local_proto=local_proto,
        remote=remote,
        remote_type=remote_type,
        remote_proto=remote_proto,
    )


def parse_sip_raw(raw: Any) -> Dict[str, Any]:
    """Start line, From, To and CSeq of a raw SIP message."""
    out: Dict[str, Any] = {
        "method": None,
        "code": None,
        "reason": None,
        "from_uri": None,
        "to_uri": None,
        "cseq": None,
    }
    if not isinstance(raw, str) or not raw:
        return out
    lines = re.split(r"\r?\n", raw)
    start = lines[0].strip()
    status = STATUS_LINE_RE.match(start)
    if status:
        out["code"] = int(status.group(1))
        out["reason"] = status.group(2).strip() or None
    else:
        request = REQUEST_LINE_RE.match(start)
        if request:
            out["method"] = request.group(1)
    for line in lines:
        name, sep, value = line.partition(":")
        if not sep:
            continue
        header = name.strip().lower()
        if header == "from":
            out["from_uri"] = value.strip() or None
        elif header == "to":
            out["to_uri"] = value.strip() or None
        elif header == "cseq":
            out["cseq"] = value.strip() or None
    return out


def decode_plugin_event(event: Any) -> Optional[Dict[str, Any]]:
    if isinstance(event, str):
        try:
            event = json.loads(event)
        except ValueError:
            return None
    return event if isinstance(event, dict) else None


def belongs_to_call(event: Dict[str, Any], call_id: str) -> bool:
    if event.get("call-id") is not None and str(event["call-id"]) == call_id:
        return True
    raw = event.get("sip")
    if not isinstance(raw, str):
        return False
    pattern = re.compile(
        r"(^|\r?\n)\s*Call-ID\s*:\s*" + re.escape(call_id) + r"(\r?\n|$)", re.IGNORECASE
    )
    return bool(pattern.search(raw))


def _direction(event: Dict[str, Any], default: str) -> str:
    name = event.get("event")
    if name == "sip-in":
        return "in"
    if name == "sip-out":
        return "out"
    direction = event.get("direction")
    if direction == "incoming":
        return "in"
    if direction == "outgoing":
        return "out"
    return default


def call_ladder(rows: Iterable[Tuple[Any, datetime]], call_id: str) -> List[SipMessage]:
    """Messages of one dialog from ``(plugin event, timestamp)`` rows."""
    messages: List[SipMessage] = []
    for raw_event, ts in rows:
        event = decode_plugin_event(raw_event)
        if event is None or not belongs_to_call(event, call_id):
            continue

        label = "SIP"
        cseq = None
        raw = event.get("sip")
        if isinstance(raw, str) and raw:
            start = re.split(r"\r?\n", raw)[0].strip()
            if start.upper().startswith("SIP/2.0"):
                label = start
            else:
                label = start.split()[0] if start.split() else "SIP"
            match = CSEQ_RE.search(raw)
            if match:
                cseq = match.group(1).strip()
        elif event.get("event"):
            label = str(event["event"])
            if event.get("call-id"):
                cseq = f"call-id:{event['call-id']}"

        messages.append(
            SipMessage(
                ts=ts,
                dir=_direction(event, "in"),
                kind="request",
                label=label,
                cseq=cseq,
            )
        )
    return messages


def handle_ladder(rows: Iterable[Tuple[Any, datetime]]) -> List[SipMessage]:
    """Messages of every dialog seen on one session/handle."""
    messages: List[SipMessage] = []
    for raw_event, ts in rows:
        event = decode_plugin_event(raw_event)
        if event is None:
            continue
        parsed = parse_sip_raw(event.get("sip"))
        if parsed["method"]:
            label = parsed["method"]
        elif parsed["code"]:
            label = f"{parsed['code']} {parsed['reason']}" if parsed["reason"] else str(parsed["code"])
        else:
            label = "SIP"
        messages.append(
            SipMessage(
                ts=ts,
                dir=_direction(event, "out"),
                kind="request" if parsed["method"] else "response",
                label=label,
                from_uri=parsed["from_uri"],
                to_uri=parsed["to_uri"],
                cseq=parsed["cseq"],
            )
        )
    return messages
