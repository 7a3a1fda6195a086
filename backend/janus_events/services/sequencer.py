"""Ingestion of decoded webhook payloads, one event or an ordered batch."""

import json
from typing import Any, Optional

from pydantic import BaseModel

from janus_events.services.classifier import EventClassifier
from janus_events.services.optional_writer import OptionalFeatureWriter
from janus_events.services.sink import PersistenceSink
from janus_events.services.sip_correlator import SipCorrelator
from janus_events.utils.logging import get_logger
from janus_events.utils.timestamps import to_datetime

logger = get_logger("janus.ingest")


class IngestionResult(BaseModel):
    """Counters for one ingestion call."""

    received: int = 0
    processed: int = 0
    failed: int = 0
    unrecognized: int = 0
    records_written: int = 0
    optional_skipped: int = 0
    sip_correlated: int = 0


def _safe_dump(payload: Any) -> str:
    try:
        return json.dumps(payload)
    except (TypeError, ValueError):
        return "[unserializable]"


class IngestionSequencer:
    """Drives classification and persistence for each inbound payload.

    A batch is processed strictly in array order and every element is fully
    persisted before the next one starts. A failing element is logged and
    skipped; a failing single event propagates to the caller.
    """

    def __init__(self, sink: PersistenceSink, classifier: Optional[EventClassifier] = None):
        self.sink = sink
        self.classifier = classifier or EventClassifier()
        self.correlator = SipCorrelator(sink)
        self.optional_writer = OptionalFeatureWriter(sink)

    async def ingest(self, payload: Any) -> IngestionResult:
        result = IngestionResult()
        if isinstance(payload, list):
            for index, item in enumerate(payload):
                result.received += 1
                try:
                    await self._process(item, result)
                except Exception as e:
                    result.failed += 1
                    logger.error(
                        "batch_event_failed",
                        index=index,
                        error=str(e),
                        error_type=type(e).__name__,
                        payload=_safe_dump(item),
                    )
            return result
        if isinstance(payload, dict):
            result.received = 1
            await self._process(payload, result)
            return result
        logger.debug("payload_ignored", payload_type=type(payload).__name__)
        return result

    async def _process(self, event: Any, result: IngestionResult) -> None:
        if not isinstance(event, dict):
            logger.debug("batch_element_ignored", element_type=type(event).__name__)
            return

        timestamp = to_datetime(event.get("timestamp"))
        classification = self.classifier.classify(event, timestamp)
        if not classification.recognized:
            result.unrecognized += 1

        for record in classification.records:
            await self.sink.insert(record)
            result.records_written += 1

        if classification.slowlink is not None:
            if await self.optional_writer.write(classification.slowlink):
                result.records_written += 1
            else:
                result.optional_skipped += 1

        sip = classification.sip
        if sip is not None:
            correlated = await self.correlator.correlate(
                sip.session, sip.handle, sip.data, sip.timestamp
            )
            if correlated is not None:
                result.sip_correlated += 1

        result.processed += 1
