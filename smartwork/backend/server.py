"""Server-sent event framing for streaming session updates to a UI."""

from __future__ import annotations

import json
from collections.abc import Iterable

from .agent import AgentEvent


def iter_events(events: Iterable[AgentEvent]) -> Iterable[str]:
    """Yield SSE frames; payloads are JSON on a single data line."""
    for e in events:
        yield f"event: {e.type}\n"
        yield f"data: {json.dumps(e.payload, ensure_ascii=False, default=str)}\n\n"
