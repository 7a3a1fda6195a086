"""Best-effort writes to tables a deployment may not have."""

from janus_events.schemas.records import EventRecord
from janus_events.services.sink import PersistenceSink
from janus_events.utils.exceptions import SchemaMissingError
from janus_events.utils.logging import get_logger

logger = get_logger("janus.optional")


class OptionalFeatureWriter:
    def __init__(self, sink: PersistenceSink):
        self.sink = sink

    async def write(self, record: EventRecord) -> bool:
        """Persist ``record``; failures are logged and reported as ``False``, never raised."""
        try:
            await self.sink.insert_optional(record)
            return True
        except SchemaMissingError as e:
            logger.warning(
                "optional_table_missing",
                kind=record.kind.value,
                table=e.table,
                hint="run the migration to enable this feature",
            )
        except Exception as e:
            logger.error(
                "optional_write_failed",
                kind=record.kind.value,
                error=str(e),
                error_type=type(e).__name__,
            )
        return False
