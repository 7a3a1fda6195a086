"""Utils package initialization."""

from janus_events.utils.exceptions import EventSinkError, PersistenceError, SchemaMissingError
from janus_events.utils.logging import WebhookLogger, get_logger, setup_logging
from janus_events.utils.timestamps import epoch_unit, to_datetime

__all__ = [
    # Errors
    "EventSinkError",
    "PersistenceError",
    "SchemaMissingError",
    # Logging
    "get_logger",
    "setup_logging",
    "WebhookLogger",
    # Timestamps
    "epoch_unit",
    "to_datetime",
]
