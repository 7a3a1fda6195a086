"""Middleware package."""

from janus_events.middleware.auth import require_webhook_auth

__all__ = [
    "require_webhook_auth",
]
