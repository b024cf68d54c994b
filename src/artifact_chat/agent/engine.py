import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ClaudeSDKClient,
    TextBlock,
    ToolUseBlock,
    create_sdk_mcp_server,
    query,
)
from claude_agent_sdk import StreamEvent as SDKStreamEvent
from claude_agent_sdk import tool as sdk_tool

from .events import EngineEvent, StreamDone, TextDelta, ToolCall, ToolResult
from .history import HistoryMessage

logger = logging.getLogger(__name__)

MCP_SERVER_NAME = "chat"
_SENTINEL = object()


def build_prompt_with_history(history: list[HistoryMessage]) -> str:
    """Flatten role-tagged history into a single prompt.

    Assistant turns with no text (an in-progress placeholder) carry nothing and
    are left out.
    """
    turns = [m for m in history if m.role == "user" or m.content]
    if len(turns) == 1 and turns[0].role == "user":
        return turns[0].content
    return "\n\n".join(f"{m.role.capitalize()}: {m.content}" for m in turns)


def _text_delta(event: dict) -> str | None:
    if event.get("type") != "content_block_delta":
        return None
    delta = event.get("delta") or {}
    if delta.get("type") == "text_delta":
        return delta.get("text") or None
    return None


def _mcp_tool_name(name: str) -> str:
    return f"mcp__{MCP_SERVER_NAME}__{name}"


class ClaudeCompletionEngine:
    """Streams a completion through the Claude Agent SDK as engine events.

    Any object with the same ``stream`` signature can stand in for this class.
    """

    def _wrap_tool(self, chat_tool, queue: asyncio.Queue):
        @sdk_tool(chat_tool.name, chat_tool.description, chat_tool.parameters)
        async def handler(args: dict) -> dict:
            try:
                result = await chat_tool.run(args)
            except Exception:
                # A raising tool is reported like one returning an Error: string
                logger.exception("Tool %s raised", chat_tool.name)
                result = f"Error: The {chat_tool.name} tool failed."
            await queue.put(ToolResult(tool_name=chat_tool.name, result=result))
            return {"content": [{"type": "text", "text": result}]}

        return handler

    def _build_options(
        self, model: str, system_prompt: str, tools: list, max_steps: int, queue: asyncio.Queue
    ) -> ClaudeAgentOptions:
        if not tools:
            return ClaudeAgentOptions(
                system_prompt=system_prompt,
                model=model,
                allowed_tools=[],
                max_turns=1,
                include_partial_messages=True,
            )
        server = create_sdk_mcp_server(
            name=MCP_SERVER_NAME,
            version="1.0.0",
            tools=[self._wrap_tool(t, queue) for t in tools],
        )
        return ClaudeAgentOptions(
            system_prompt=system_prompt,
            model=model,
            mcp_servers={MCP_SERVER_NAME: server},
            allowed_tools=[_mcp_tool_name(t.name) for t in tools],
            max_turns=max_steps,
            include_partial_messages=True,
        )

    async def stream(
        self,
        model: str,
        system_prompt: str,
        history: list[HistoryMessage],
        tools: list,
        max_steps: int,
    ) -> AsyncIterator[EngineEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        options = self._build_options(model, system_prompt, tools, max_steps, queue)
        prompt = build_prompt_with_history(history)

        async def run_agent():
            """Run the SDK loop in a background task, pushing events to the queue."""
            try:
                async with ClaudeSDKClient(options=options) as client:
                    await client.query(prompt)
                    async for message in client.receive_response():
                        if isinstance(message, SDKStreamEvent):
                            delta = _text_delta(message.event)
                            if delta:
                                await queue.put(TextDelta(delta))
                        elif isinstance(message, AssistantMessage):
                            for block in message.content:
                                if isinstance(block, ToolUseBlock):
                                    name = block.name.removeprefix(f"mcp__{MCP_SERVER_NAME}__")
                                    await queue.put(ToolCall(tool_name=name, args=block.input))
            except Exception as e:
                await queue.put(e)
            finally:
                await queue.put(_SENTINEL)

        agent_task = asyncio.create_task(run_agent())
        try:
            while True:
                item = await queue.get()
                if item is _SENTINEL:
                    break
                if isinstance(item, Exception):
                    raise item
                yield item
            await agent_task
            yield StreamDone()
        finally:
            if not agent_task.done():
                agent_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await agent_task


class TextGenerator:
    """One-shot, tool-less text completion."""

    async def generate(self, system_prompt: str, prompt: str, model: str | None = None) -> str:
        options = ClaudeAgentOptions(
            system_prompt=system_prompt,
            model=model,
            allowed_tools=[],
            max_turns=1,
        )
        parts = []
        async for message in query(prompt=prompt, options=options):
            if isinstance(message, AssistantMessage):
                for block in message.content:
                    if isinstance(block, TextBlock):
                        parts.append(block.text)
        return "".join(parts)
