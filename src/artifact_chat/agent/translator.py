import logging
import re
from collections.abc import AsyncIterator

from .events import EngineEvent, StreamEvent, TextDelta, ToolResult

logger = logging.getLogger(__name__)

ARTIFACT_MARKER_RE = re.compile(r"\[artifact:([a-f0-9-]+)\]")
KNOWLEDGE_MARKER_RE = re.compile(r"\[knowledge:(\d+) results\]")

SCAFFOLD_TOOL = "generate_laravel_model"
KNOWLEDGE_TOOL = "search_knowledge"
KNOWLEDGE_HEADING = "\n\n**Knowledge Base Results:**"


class StreamEventTranslator:
    """Turns completion engine events into wire events while accumulating the reply.

    ``text`` is the exact concatenation of every fragment emitted as a text
    event, in order; it is what gets persisted. Tool results that are errors or
    carry no known marker change nothing and emit nothing.
    """

    def __init__(self, store) -> None:
        self._store = store
        self.text = ""
        self.artifact_ids: list[str] = []

    def _append(self, fragment: str) -> StreamEvent:
        self.text += fragment
        return StreamEvent.text(fragment)

    async def translate(self, events: AsyncIterator[EngineEvent]) -> AsyncIterator[StreamEvent]:
        async for event in events:
            if isinstance(event, TextDelta):
                yield self._append(event.delta)
            elif isinstance(event, ToolResult):
                async for out in self._handle_tool_result(event):
                    yield out

    async def _handle_tool_result(self, event: ToolResult) -> AsyncIterator[StreamEvent]:
        result = event.result

        if event.tool_name == SCAFFOLD_TOOL and not result.startswith("Error:"):
            yield self._append("\n\n" + result)

        if event.tool_name == KNOWLEDGE_TOOL and KNOWLEDGE_MARKER_RE.search(result):
            context_start = result.find("\n\n")
            if context_start != -1:
                yield self._append(KNOWLEDGE_HEADING + result[context_start:])

        match = ARTIFACT_MARKER_RE.search(result)
        if match:
            artifact_id = match.group(1)
            self.artifact_ids.append(artifact_id)
            artifact = await self._store.get_artifact(artifact_id)
            if artifact is not None:
                yield StreamEvent.from_artifact(artifact)
            else:
                logger.warning("Tool %s referenced unknown artifact %s", event.tool_name, artifact_id)
