"""HTTP routers."""

from janus_events.api.queries import router as queries_router
from janus_events.api.webhook import router as webhook_router

__all__ = ["queries_router", "webhook_router"]
