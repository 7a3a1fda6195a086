"""Models package initialization."""

from janus_events.models.media import MediaState, MediaStats
from janus_events.models.plugin import CoreStatus, PluginEvent, TransportEvent
from janus_events.models.session import HandleEvent, SessionEvent
from janus_events.models.sip_call import SipCall, SipDirection
from janus_events.models.slowlink import Slowlink
from janus_events.models.webrtc import ConnectionState, DtlsState, IceState, Sdp, SelectedPair

__all__ = [
    # Lifecycle
    "SessionEvent",
    "HandleEvent",
    # Negotiation
    "Sdp",
    "IceState",
    "SelectedPair",
    "DtlsState",
    "ConnectionState",
    # Media
    "MediaState",
    "MediaStats",
    # Plugin / transport / core
    "PluginEvent",
    "TransportEvent",
    "CoreStatus",
    # Optional
    "Slowlink",
    # SIP
    "SipCall",
    "SipDirection",
]
