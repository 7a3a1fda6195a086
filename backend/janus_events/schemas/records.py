"""Normalized records produced from Janus events."""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict


class RecordKind(str, Enum):
    """One kind per destination table."""
    SESSION = "session"
    HANDLE = "handle"
    JSEP = "jsep"
    ICE = "ice"
    SELECTED_PAIR = "selected_pair"
    DTLS = "dtls"
    CONNECTION = "connection"
    MEDIA = "media"
    STATS = "stats"
    PLUGIN = "plugin"
    TRANSPORT = "transport"
    CORE = "core"
    SLOWLINK = "slowlink"
    SIP_CALL = "sip_call"


class EventRecord(BaseModel):
    """Base for every persisted record; field names match column names."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[RecordKind]

    timestamp: datetime

    def columns(self) -> dict[str, Any]:
        return self.model_dump()


class ScopedRecord(EventRecord):
    session: Optional[int] = None
    handle: Optional[int] = None


class SessionEventRecord(EventRecord):
    kind: ClassVar[RecordKind] = RecordKind.SESSION
    session: Optional[int] = None
    event: Optional[str] = None


class HandleEventRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.HANDLE
    event: Optional[str] = None
    plugin: Optional[str] = None


class JsepRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.JSEP
    remote: bool = False
    offer: bool = False
    sdp: Optional[str] = None


class IceRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.ICE
    stream: Optional[int] = None
    component: Optional[int] = None
    state: Optional[str] = None


class SelectedPairRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.SELECTED_PAIR
    stream: Optional[int] = None
    component: Optional[int] = None
    selected: Optional[str] = None


class DtlsRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.DTLS
    state: Optional[str] = None


class ConnectionRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.CONNECTION
    state: Optional[str] = None


class MediaRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.MEDIA
    medium: Optional[str] = None
    receiving: bool = False


class StatsRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.STATS
    subtype: Optional[int] = None
    mid: Optional[str] = None
    mindex: Optional[int] = None
    codec: Optional[str] = None
    medium: Optional[str] = None
    base: Optional[int] = None
    lsr: Optional[int] = None
    lostlocal: Optional[int] = None
    lostremote: Optional[int] = None
    jitterlocal: Optional[float] = None
    jitterremote: Optional[float] = None
    packetssent: Optional[int] = None
    packetsrecv: Optional[int] = None
    bytessent: Optional[int] = None
    bytesrecv: Optional[int] = None
    nackssent: Optional[int] = None
    nacksrecv: Optional[int] = None
    rtt: Optional[float] = None
    rtt_ntp: Optional[int] = None
    rtt_lsr: Optional[int] = None
    rtt_dlsr: Optional[int] = None
    in_link_quality: Optional[float] = None
    in_media_link_quality: Optional[float] = None
    out_link_quality: Optional[float] = None
    out_media_link_quality: Optional[float] = None
    bytes_sent_lastsec: Optional[int] = None
    bytes_recv_lastsec: Optional[int] = None
    retransmissions_recv: Optional[int] = None


class PluginEventRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.PLUGIN
    plugin: Optional[str] = None
    event: str = "null"


class TransportEventRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.TRANSPORT
    plugin: Optional[str] = None
    event: str = "null"


class CoreStatusRecord(EventRecord):
    """Server-wide status; carries no session or handle."""
    kind: ClassVar[RecordKind] = RecordKind.CORE
    name: str = "status"
    value: Optional[str] = None


class SlowlinkRecord(ScopedRecord):
    kind: ClassVar[RecordKind] = RecordKind.SLOWLINK
    payload: str = "{}"


class SipCallRecord(BaseModel):
    """Correlation of a SIP Call-ID with the session/handle carrying it."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[RecordKind] = RecordKind.SIP_CALL

    call_id: str
    session: Optional[int] = None
    handle: Optional[int] = None
    from_uri: Optional[str] = None
    to_uri: Optional[str] = None
    direction: Optional[str] = None
    created_at: datetime

    def columns(self) -> dict[str, Any]:
        return self.model_dump()
