"""Correlation of SIP plugin events with Janus sessions by Call-ID."""

from datetime import datetime
from typing import Any, Dict, Optional

from janus_events.models.sip_call import SipDirection
from janus_events.schemas.records import SipCallRecord
from janus_events.services.sink import PersistenceSink
from janus_events.utils.logging import get_logger

logger = get_logger("janus.sip")

FROM_KEYS = ("from", "from_uri", "caller")
TO_KEYS = ("to", "to_uri", "callee")
# width of sip_calls.call_id
MAX_CALL_ID_LENGTH = 255

_DIRECTION_ALIASES = {
    "in": SipDirection.INBOUND.value,
    "incoming": SipDirection.INBOUND.value,
    "inbound": SipDirection.INBOUND.value,
    "out": SipDirection.OUTBOUND.value,
    "outgoing": SipDirection.OUTBOUND.value,
    "outbound": SipDirection.OUTBOUND.value,
}


def _normalize_str(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def extract_call_id(data: Dict[str, Any]) -> Optional[str]:
    """Find the SIP Call-ID in a plugin payload, if it carries one."""
    headers = data.get("headers")
    if not isinstance(headers, dict):
        headers = {}
    candidates = (
        data.get("call_id"),
        data.get("call-id"),
        headers.get("Call-ID"),
        headers.get("call-id"),
        data.get("sip_call_id"),
    )
    for candidate in candidates:
        value = _normalize_str(candidate)
        if value and len(value) <= MAX_CALL_ID_LENGTH:
            return value
    return None


def _extract_first_str(data: Dict[str, Any], keys: tuple) -> Optional[str]:
    for key in keys:
        value = _normalize_str(data.get(key))
        if value:
            return value
    return None


def extract_direction(data: Dict[str, Any]) -> Optional[str]:
    if data.get("incoming") is True:
        return SipDirection.INBOUND.value
    if data.get("outgoing") is True:
        return SipDirection.OUTBOUND.value
    raw = _normalize_str(data.get("direction"))
    if raw is None:
        return None
    return _DIRECTION_ALIASES.get(raw.lower(), raw)


def build_sip_call(
    session: Optional[int],
    handle: Optional[int],
    data: Dict[str, Any],
    timestamp: datetime,
) -> Optional[SipCallRecord]:
    call_id = extract_call_id(data)
    if not call_id:
        return None
    return SipCallRecord(
        call_id=call_id,
        session=session,
        handle=handle,
        from_uri=_extract_first_str(data, FROM_KEYS),
        to_uri=_extract_first_str(data, TO_KEYS),
        direction=extract_direction(data),
        created_at=timestamp,
    )


class SipCorrelator:
    """Keeps ``sip_calls`` pointing at the session/handle carrying each dialog."""

    def __init__(self, sink: PersistenceSink):
        self.sink = sink

    async def correlate(
        self,
        session: Optional[int],
        handle: Optional[int],
        data: Dict[str, Any],
        timestamp: datetime,
    ) -> Optional[SipCallRecord]:
        """Upsert the call mapping; returns ``None`` when no Call-ID is present."""
        record = build_sip_call(session, handle, data, timestamp)
        if record is None:
            logger.debug(
                "sip_call_id_missing",
                session=session,
                handle=handle,
                data_keys=sorted(data.keys()),
            )
            return None
        await self.sink.upsert_sip_call(record)
        logger.info(
            "sip_call_correlated",
            call_id=record.call_id,
            session=session,
            handle=handle,
            direction=record.direction,
        )
        return record
