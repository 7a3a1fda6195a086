"""Janus event handler webhook endpoints."""

import json

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from janus_events.config import settings
from janus_events.middleware.auth import require_webhook_auth
from janus_events.services.sequencer import IngestionSequencer
from janus_events.utils.logging import WebhookLogger

router = APIRouter()

# Janus is usually pointed at one of these
HOOK_PATHS = ("/", "/hooks/janus", "/janus", "/events")


def get_sequencer(request: Request) -> IngestionSequencer:
    return request.app.state.sequencer


async def read_limited_body(request: Request, limit: int) -> bytes:
    """Read the request body, giving up with 413 once it exceeds ``limit`` bytes."""
    received = bytearray()
    async for chunk in request.stream():
        received.extend(chunk)
        if len(received) > limit:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)
    return bytes(received)


async def receive_hook(
    request: Request,
    _: None = Depends(require_webhook_auth),
    sequencer: IngestionSequencer = Depends(get_sequencer),
) -> Response:
    """Ingest one event or a batch posted by the Janus HTTP event handler."""
    remote_addr = request.client.host if request.client else "unknown"
    hook_logger = WebhookLogger(remote_addr, request.url.path)

    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > settings.max_body_bytes:
        hook_logger.warning("hook_body_too_large", body_bytes=int(declared))
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)

    try:
        raw = await read_limited_body(request, settings.max_body_bytes)
    except HTTPException:
        hook_logger.warning("hook_body_too_large", limit=settings.max_body_bytes)
        raise
    if not raw:
        hook_logger.warning("hook_empty_body")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="empty body")

    body = raw.decode("utf-8", errors="replace")
    hook_logger.received(request.headers, body)

    try:
        payload = json.loads(body)
    except ValueError as e:
        hook_logger.warning("hook_invalid_json", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid json")

    try:
        result = await sequencer.ingest(payload)
    except Exception as e:
        hook_logger.error("hook_ingest_failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="db_error"
        )

    hook_logger.log("hook_processed", **result.model_dump())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


for _path in HOOK_PATHS:
    router.add_api_route(
        _path,
        receive_hook,
        methods=["POST"],
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        tags=["Webhook"],
    )


@router.post("/{path:path}", include_in_schema=False)
async def reject_other_posts(path: str) -> Response:
    """POSTs anywhere but the hook paths."""
    raise HTTPException(status_code=status.HTTP_405_METHOD_NOT_ALLOWED)
