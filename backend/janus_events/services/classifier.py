"""Classification of Janus event handler payloads into normalized records.

Janus tags every event with a numeric ``type``. A few types are further
split on which optional field the nested ``event`` object carries; those
probes run in a fixed order and the first non-null field wins.
"""

import json
import math
from datetime import datetime
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from janus_events.config import settings
from janus_events.schemas.records import (
    ConnectionRecord,
    CoreStatusRecord,
    DtlsRecord,
    EventRecord,
    HandleEventRecord,
    IceRecord,
    JsepRecord,
    MediaRecord,
    PluginEventRecord,
    SelectedPairRecord,
    SessionEventRecord,
    SlowlinkRecord,
    StatsRecord,
    TransportEventRecord,
)
from janus_events.utils.logging import get_logger

logger = get_logger("janus.classifier")


class EventType(IntEnum):
    """Janus event handler type codes."""
    SESSION = 1
    HANDLE = 2
    JSEP = 8
    WEBRTC = 16
    MEDIA = 32
    PLUGIN = 64
    TRANSPORT = 128
    CORE = 256


SLOWLINK_KEYS = ("slowlink", "slowlink_threshold", "slowlink-threshold")


class SipTrigger(BaseModel):
    """Plugin payload handed to the SIP correlator."""

    session: Optional[int] = None
    handle: Optional[int] = None
    data: Dict[str, Any]
    timestamp: datetime


class Classification(BaseModel):
    """Outcome of classifying one event object."""

    model_config = ConfigDict(frozen=True)

    event_type: Optional[int] = None
    recognized: bool = False
    records: List[EventRecord] = Field(default_factory=list)
    slowlink: Optional[SlowlinkRecord] = None
    sip: Optional[SipTrigger] = None


BIGINT_MIN = -(2**63)
BIGINT_MAX = 2**63 - 1


def _bigint(value: int) -> Optional[int]:
    return value if BIGINT_MIN <= value <= BIGINT_MAX else None


def as_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return _bigint(value)
    if isinstance(value, str) and value.strip().isdecimal():
        return _bigint(int(value.strip()))
    return None


def as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return _bigint(value)
    if isinstance(value, float):
        return _bigint(int(value)) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return _bigint(int(float(value.strip())))
        except (ValueError, OverflowError):
            return None
    return None


def as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            number = float(value.strip())
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return serialize(value)


def serialize(value: Any) -> str:
    """JSON text of a payload; ``None`` serializes to ``"null"``."""
    return json.dumps(value, default=str)


def has_slowlink(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    return any(key in payload for key in SLOWLINK_KEYS)


def _nested(event: Dict[str, Any]) -> Dict[str, Any]:
    nested = event.get("event")
    return nested if isinstance(nested, dict) else {}


def _event_type(event: Dict[str, Any]) -> Optional[int]:
    value = event.get("type")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


class EventClassifier:
    """Turns one decoded Janus event into records and side-effect triggers."""

    def __init__(self, sip_plugin: Optional[str] = None):
        self.sip_plugin = sip_plugin or settings.sip_plugin
        self._handlers: Dict[int, Callable[[Dict[str, Any], datetime], Classification]] = {
            EventType.SESSION: self._session,
            EventType.HANDLE: self._handle,
            EventType.JSEP: self._jsep,
            EventType.WEBRTC: self._webrtc,
            EventType.MEDIA: self._media,
            EventType.PLUGIN: self._plugin,
            EventType.TRANSPORT: self._plugin,
            EventType.CORE: self._core,
        }
        # probe order is part of the protocol: first non-null field wins
        self._webrtc_probes: Tuple[Tuple[str, Callable[..., EventRecord]], ...] = (
            ("ice", self._ice),
            ("selected-pair", self._selected_pair),
            ("dtls", self._dtls),
            ("connection", self._connection),
        )
        self._media_probes: Tuple[Tuple[str, Callable[..., EventRecord]], ...] = (
            ("receiving", self._media_state),
            ("base", self._stats),
        )

    def classify(self, event: Dict[str, Any], timestamp: datetime) -> Classification:
        event_type = _event_type(event)
        handler = self._handlers.get(event_type) if event_type is not None else None
        if handler is None:
            logger.warning("unsupported_event_type", type=event.get("type"))
            return Classification(event_type=event_type)
        return handler(event, timestamp)

    # ------------------------------------------------------------------
    # type 1 / 2 / 8

    def _session(self, event: Dict[str, Any], timestamp: datetime) -> Classification:
        nested = _nested(event)
        record = SessionEventRecord(
            session=as_id(event.get("session_id")),
            event=as_text(nested.get("name")),
            timestamp=timestamp,
        )
        return Classification(event_type=EventType.SESSION, recognized=True, records=[record])

    def _handle(self, event: Dict[str, Any], timestamp: datetime) -> Classification:
        nested = _nested(event)
        record = HandleEventRecord(
            session=as_id(event.get("session_id")),
            handle=as_id(event.get("handle_id")),
            event=as_text(nested.get("name")),
            plugin=as_text(nested.get("plugin")),
            timestamp=timestamp,
        )
        return Classification(event_type=EventType.HANDLE, recognized=True, records=[record])

    def _jsep(self, event: Dict[str, Any], timestamp: datetime) -> Classification:
        nested = _nested(event)
        jsep = nested.get("jsep") if isinstance(nested.get("jsep"), dict) else {}
        record = JsepRecord(
            session=as_id(event.get("session_id")),
            handle=as_id(event.get("handle_id")),
            remote=nested.get("owner") == "remote",
            offer=jsep.get("type") == "offer",
            sdp=as_text(jsep.get("sdp")),
            timestamp=timestamp,
        )
        return Classification(event_type=EventType.JSEP, recognized=True, records=[record])

    # ------------------------------------------------------------------
    # type 16

    def _webrtc(self, event: Dict[str, Any], timestamp: datetime) -> Classification:
        nested = _nested(event)
        for key, build in self._webrtc_probes:
            if nested.get(key) is not None:
                record = build(event, nested, nested[key], timestamp)
                return Classification(
                    event_type=EventType.WEBRTC, recognized=True, records=[record]
                )
        logger.warning("unsupported_webrtc_event", event_keys=sorted(nested.keys()))
        return Classification(event_type=EventType.WEBRTC)

    def _ice(self, event, nested, value, timestamp) -> IceRecord:
        return IceRecord(
            session=as_id(event.get("session_id")),
            handle=as_id(event.get("handle_id")),
            stream=as_int(nested.get("stream_id")),
            component=as_int(nested.get("component_id")),
            state=as_text(value),
            timestamp=timestamp,
        )

    def _selected_pair(self, event, nested, value, timestamp) -> SelectedPairRecord:
        return SelectedPairRecord(
            session=as_id(event.get("session_id")),
            handle=as_id(event.get("handle_id")),
            stream=as_int(nested.get("stream_id")),
            component=as_int(nested.get("component_id")),
            selected=as_text(value),
            timestamp=timestamp,
        )

    def _dtls(self, event, nested, value, timestamp) -> DtlsRecord:
        return DtlsRecord(
            session=as_id(event.get("session_id")),
            handle=as_id(event.get("handle_id")),
            state=as_text(value),
            timestamp=timestamp,
        )

    def _connection(self, event, nested, value, timestamp) -> ConnectionRecord:
        return ConnectionRecord(
            session=as_id(event.get("session_id")),
            handle=as_id(event.get("handle_id")),
            state=as_text(value),
            timestamp=timestamp,
        )

    # ------------------------------------------------------------------
    # type 32

    def _media(self, event: Dict[str, Any], timestamp: datetime) -> Classification:
        nested = _nested(event)
        for key, build in self._media_probes:
            if nested.get(key) is not None:
                record = build(event, nested, nested[key], timestamp)
                return Classification(
                    event_type=EventType.MEDIA, recognized=True, records=[record]
                )
        logger.warning("unsupported_media_event", event_keys=sorted(nested.keys()))
        return Classification(event_type=EventType.MEDIA)

    def _media_state(self, event, nested, value, timestamp) -> MediaRecord:
        return MediaRecord(
            session=as_id(event.get("session_id")),
            handle=as_id(event.get("handle_id")),
            medium=as_text(nested.get("media")),
            receiving=value is True,
            timestamp=timestamp,
        )

    def _stats(self, event, nested, value, timestamp) -> StatsRecord:
        rtt_values = nested.get("rtt-values")
        if not isinstance(rtt_values, dict):
            rtt_values = {}
        return StatsRecord(
            session=as_id(event.get("session_id")),
            handle=as_id(event.get("handle_id")),
            subtype=as_int(event.get("subtype")),
            mid=as_text(nested.get("mid")),
            mindex=as_int(nested.get("mindex")),
            codec=as_text(nested.get("codec")),
            medium=as_text(nested.get("media")),
            base=as_int(value),
            lsr=as_int(nested.get("lsr")),
            lostlocal=as_int(nested.get("lost")),
            lostremote=as_int(nested.get("lost-by-remote")),
            jitterlocal=as_float(nested.get("jitter-local")),
            jitterremote=as_float(nested.get("jitter-remote")),
            packetssent=as_int(nested.get("packets-sent")),
            packetsrecv=as_int(nested.get("packets-received")),
            bytessent=as_int(nested.get("bytes-sent")),
            bytesrecv=as_int(nested.get("bytes-received")),
            nackssent=as_int(nested.get("nacks-sent")),
            nacksrecv=as_int(nested.get("nacks-received")),
            rtt=as_float(nested.get("rtt")),
            rtt_ntp=as_int(rtt_values.get("ntp")),
            rtt_lsr=as_int(rtt_values.get("lsr")),
            rtt_dlsr=as_int(rtt_values.get("dlsr")),
            in_link_quality=as_float(nested.get("in-link-quality")),
            in_media_link_quality=as_float(nested.get("in-media-link-quality")),
            out_link_quality=as_float(nested.get("out-link-quality")),
            out_media_link_quality=as_float(nested.get("out-media-link-quality")),
            bytes_sent_lastsec=as_int(nested.get("bytes-sent-lastsec")),
            bytes_recv_lastsec=as_int(nested.get("bytes-received-lastsec")),
            retransmissions_recv=as_int(nested.get("retransmissions-received")),
            timestamp=timestamp,
        )

    # ------------------------------------------------------------------
    # type 64 / 128

    def _plugin(self, event: Dict[str, Any], timestamp: datetime) -> Classification:
        nested = _nested(event)
        event_type = EventType(event["type"])
        session = as_id(event.get("session_id"))
        handle = as_id(event.get("handle_id"))
        plugin = nested.get("plugin")
        if plugin is None and event_type == EventType.TRANSPORT:
            plugin = nested.get("transport")
        plugin = as_text(plugin)
        data = nested.get("data")

        record_cls = PluginEventRecord if event_type == EventType.PLUGIN else TransportEventRecord
        record = record_cls(
            session=session,
            handle=handle,
            plugin=plugin,
            event=serialize(data),
            timestamp=timestamp,
        )

        slowlink = None
        if has_slowlink(data):
            slowlink = SlowlinkRecord(
                session=session, handle=handle, payload=serialize(data), timestamp=timestamp
            )

        sip = None
        if plugin == self.sip_plugin and isinstance(data, dict) and data:
            sip = SipTrigger(session=session, handle=handle, data=data, timestamp=timestamp)

        return Classification(
            event_type=event_type,
            recognized=True,
            records=[record],
            slowlink=slowlink,
            sip=sip,
        )

    # ------------------------------------------------------------------
    # type 256

    def _core(self, event: Dict[str, Any], timestamp: datetime) -> Classification:
        nested = _nested(event)

        slowlink = None
        if has_slowlink(nested):
            slowlink = SlowlinkRecord(
                session=as_id(event.get("session_id")),
                handle=as_id(event.get("handle_id")),
                payload=serialize(nested),
                timestamp=timestamp,
            )

        value = as_text(nested.get("status"))
        signum = nested.get("signum")
        if signum is not None:
            value = f"{value if value is not None else 'null'} ({signum})"

        record = CoreStatusRecord(name="status", value=value, timestamp=timestamp)
        return Classification(
            event_type=EventType.CORE, recognized=True, records=[record], slowlink=slowlink
        )
