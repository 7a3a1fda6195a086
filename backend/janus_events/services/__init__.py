"""Ingestion pipeline and query services."""

from janus_events.services.classifier import Classification, EventClassifier, EventType
from janus_events.services.optional_writer import OptionalFeatureWriter
from janus_events.services.sequencer import IngestionResult, IngestionSequencer
from janus_events.services.sink import MemorySink, PersistenceSink, SqlAlchemySink
from janus_events.services.sip_correlator import SipCorrelator

__all__ = [
    "Classification",
    "EventClassifier",
    "EventType",
    "OptionalFeatureWriter",
    "IngestionResult",
    "IngestionSequencer",
    "MemorySink",
    "PersistenceSink",
    "SqlAlchemySink",
    "SipCorrelator",
]
