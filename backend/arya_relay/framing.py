from __future__ import annotations

import json

from .models import StreamEvent

EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
EVENT_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class SSEEventCodec:
    """Frames each event as a `data: <json>` line followed by a blank line."""

    media_type = EVENT_STREAM_MEDIA_TYPE

    def encode(self, event: StreamEvent) -> bytes:
        return f"data: {json.dumps(event.as_payload())}\n\n".encode("utf-8")
