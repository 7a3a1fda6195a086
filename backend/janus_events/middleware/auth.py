"""HTTP Basic gate for the webhook endpoints."""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from janus_events.config import settings

security = HTTPBasic(auto_error=False)

REALM = 'Basic realm="Janus events DB backend"'


def _matches(provided: str, expected: str) -> bool:
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_webhook_auth(
    credentials: Optional[HTTPBasicCredentials] = Depends(security),
) -> None:
    """Reject the hook unless Basic credentials match; open when none are configured."""
    if not settings.webhook_auth_enabled:
        return
    if (
        credentials is None
        or not _matches(credentials.username, settings.webhook_username)
        or not _matches(credentials.password, settings.webhook_password)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": REALM},
        )
