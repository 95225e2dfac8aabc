"""Server-Sent Events for live parsing progress."""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
import asyncio
import json

from ..dependencies import get_hub
from core.progress import ProgressHub
from core.types import ProgressEvent


router = APIRouter()

HEARTBEAT_SECONDS = 15.0


def _format_event(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_dict(), ensure_ascii=False)}\n\n"


@router.get("/parse/{user_id}/stream")
async def stream_progress(
    user_id: int,
    since: int = Query(default=-1, description="Replay buffered events after this sequence"),
    hub: ProgressHub = Depends(get_hub),
):
    """
    Stream parsing progress via SSE.

    Every progress line, user message, report notification and the final
    outcome of the user's session is forwarded in emission order. The
    stream ends after the ``finished`` event.

    Args:
        user_id: User whose session to follow
        since: Sequence number to replay buffered events from; -1 only
            streams new events
        hub: Progress hub (injected)

    Returns:
        StreamingResponse: SSE stream of progress events

    Event types:
        - progress: accumulated progress lines (same ``handle`` while the
          display should be edited in place)
        - message / error: standalone notices
        - report: a report file is ready for download
        - finished: session outcome, last event of the stream

    Example SSE events:
        ```
        data: {"sequence": 7, "user_id": 1, "type": "progress", "text": "Page 1: received 100 products", "handle": 7, "data": {}}

        data: {"sequence": 12, "user_id": 1, "type": "finished", "text": "reported", "handle": null, "data": {"outcome": "reported", "succeeded": true}}
        ```
    """

    queue = hub.subscribe(user_id)

    async def event_generator():
        """Generate SSE events."""
        last_sequence = since
        try:
            if since >= 0:
                for event in hub.history(user_id):
                    if event.sequence <= last_sequence:
                        continue
                    last_sequence = event.sequence
                    yield _format_event(event)
                    if event.is_final:
                        return

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                if event.sequence <= last_sequence:
                    continue
                last_sequence = event.sequence
                yield _format_event(event)
                if event.is_final:
                    return
        finally:
            hub.unsubscribe(user_id, queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"  # Disable nginx buffering
        }
    )
