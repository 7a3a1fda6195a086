"""Response schemas for the query API."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, field_validator


class UtcModel(BaseModel):
    """Naive datetimes coming back from SQLite are UTC."""

    @field_validator("*", mode="after")
    @classmethod
    def force_utc(cls, v):
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class SessionItem(BaseModel):
    session: int


class HandleItem(BaseModel):
    handle: int


class StatsPoint(UtcModel):
    """One time bucket of media statistics."""
    ts: datetime
    base: Optional[float] = None
    lsr: Optional[float] = None
    jitterlocal: Optional[float] = None
    jitterremote: Optional[float] = None
    rtt: Optional[float] = None
    in_lq: Optional[float] = None
    in_mlq: Optional[float] = None
    out_lq: Optional[float] = None
    out_mlq: Optional[float] = None
    lostlocal: Optional[int] = None
    lostremote: Optional[int] = None
    packetssent: Optional[int] = None
    packetsrecv: Optional[int] = None
    bytessent: Optional[int] = None
    bytesrecv: Optional[int] = None
    nackssent: Optional[int] = None
    nacksrecv: Optional[int] = None
    tx_bps: Optional[float] = None
    rx_bps: Optional[float] = None
    tx_bps_inst: Optional[float] = None
    rx_bps_inst: Optional[float] = None
    retransmissions_recv: Optional[int] = None


class TimelineEvent(UtcModel):
    """ICE/DTLS/JSEP/SLOWLINK flag on a timeline."""
    time: datetime
    type: str
    state: Optional[str] = None
    detail: Optional[str] = None


class EventsByCallResponse(BaseModel):
    session: Optional[int] = None
    handle: Optional[int] = None
    events: List[TimelineEvent]


class SelectedPairInfo(BaseModel):
    selected: Optional[str] = None
    local: Optional[str] = None
    local_type: Optional[str] = None
    local_proto: Optional[str] = None
    remote: Optional[str] = None
    remote_type: Optional[str] = None
    remote_proto: Optional[str] = None


class SipCallResponse(UtcModel):
    call_id: str
    session: Optional[int] = None
    handle: Optional[int] = None
    from_uri: Optional[str] = None
    to_uri: Optional[str] = None
    direction: Optional[str] = None
    created_at: datetime


class SipCallListItem(SipCallResponse):
    selected_pair: SelectedPairInfo = SelectedPairInfo()


class SipMessage(UtcModel):
    ts: datetime
    dir: str
    kind: str
    label: str
    from_uri: Optional[str] = None
    to_uri: Optional[str] = None
    cseq: Optional[str] = None


class SipFlowResponse(BaseModel):
    session: Optional[int] = None
    handle: Optional[int] = None
    participants: List[str]
    messages: List[SipMessage]
