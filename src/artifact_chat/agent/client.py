import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

import anyio

from ..config import MAX_TOOL_STEPS, model_supports_tools
from .events import StreamEvent
from .history import build_history
from .prompts import build_system_prompt
from .reconciler import PersistenceReconciler
from .tools import (
    ArtifactCreationTool,
    KnowledgeSearchTool,
    ScaffoldGenerationTool,
    Tool,
    WebSearchTool,
)
from .translator import StreamEventTranslator
from .triggers import ARTIFACT_TRIGGERS, SCAFFOLD_TRIGGERS, matches

logger = logging.getLogger(__name__)

STREAM_ERROR_MESSAGE = "An error occurred while streaming the response."


class ChatStreamService:
    """Streams one assistant turn: placeholder, tools, completion, reconciliation."""

    def __init__(
        self,
        store,
        engine,
        artifact_generator,
        knowledge,
        scaffold_runner,
        title_dispatcher,
        web_search=None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._artifact_generator = artifact_generator
        self._knowledge = knowledge
        self._scaffold = scaffold_runner
        self._web_search = web_search
        self._reconciler = PersistenceReconciler(store, title_dispatcher)

    def build_tools(self, user_message: str, message_id: str) -> list[Tool]:
        tools: list[Tool] = []
        if matches(user_message, ARTIFACT_TRIGGERS):
            tools.append(ArtifactCreationTool(self._store, self._artifact_generator, message_id))
        if matches(user_message, SCAFFOLD_TRIGGERS):
            tools.append(ScaffoldGenerationTool(self._scaffold))

        # The model decides whether knowledge is relevant
        tools.append(KnowledgeSearchTool(self._knowledge))

        if self._web_search is not None:
            web_tool = WebSearchTool(self._web_search)
            if web_tool.available:
                tools.append(web_tool)
        return tools

    async def stream(self, chat: dict, user_message: str, model: str) -> AsyncIterator[StreamEvent]:
        """Yield wire events for one assistant turn.

        The user message must already be stored on the chat. On failure the
        caller receives a single generic error event; details only go to the log.
        """
        chat_id = chat["id"]
        translator = StreamEventTranslator(self._store)
        placeholder_id: str | None = None

        try:
            placeholder = await self._reconciler.create_placeholder(chat_id)
            placeholder_id = placeholder["id"]

            tools = self.build_tools(user_message, placeholder_id) if model_supports_tools(model) else []
            history = build_history(await self._store.get_messages(chat_id))
            logger.info(
                "Streaming chat %s with %s (tools: %s)",
                chat_id,
                model,
                ", ".join(t.name for t in tools) or "none",
            )

            upstream = self._engine.stream(
                model=model,
                system_prompt=build_system_prompt(tools),
                history=history,
                tools=tools,
                max_steps=MAX_TOOL_STEPS,
            )
            async with aclosing(upstream) as events:
                async for event in translator.translate(events):
                    yield event

            await self._reconciler.finalize(
                chat_id, placeholder_id, translator.text, translator.artifact_ids
            )

        except (asyncio.CancelledError, GeneratorExit):
            # Client went away: same rollback as a failure, nothing left to send
            logger.info("Chat %s stream cancelled", chat_id)
            # The server keeps cancelling every await in this scope; finish the rollback first
            with anyio.CancelScope(shield=True):
                await self._reconciler.cleanup(placeholder_id, translator.text)
            raise

        except Exception:
            logger.exception("Chat stream error for chat %s", chat_id)
            try:
                await self._reconciler.cleanup(placeholder_id, translator.text)
            except Exception:
                logger.exception("Cleanup failed for chat %s", chat_id)
            yield StreamEvent.error(STREAM_ERROR_MESSAGE)
