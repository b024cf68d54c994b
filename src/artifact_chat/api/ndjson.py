import json
import logging
from collections.abc import AsyncIterator, Iterable

from ..agent.events import StreamEvent

logger = logging.getLogger(__name__)

NDJSON_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_event(event: StreamEvent) -> str:
    """Serialize one event as a single newline-terminated JSON line."""
    return event.to_json() + "\n"


async def ndjson_lines(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield format_event(event)


def parse_lines(body: str | Iterable[str]) -> list[dict]:
    """Parse an NDJSON body, skipping lines that are not valid JSON objects."""
    lines = body.splitlines() if isinstance(body, str) else body
    events = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Skipping unparseable stream line: %s", line[:200])
            continue
        if isinstance(payload, dict):
            events.append(payload)
    return events
