import anyio
import pytest
from fakes import CallTool, FakeKnowledgeService, FakeScaffoldRunner, FakeWebSearch, Hang

from artifact_chat.agent import client as client_module
from artifact_chat.agent.client import STREAM_ERROR_MESSAGE
from artifact_chat.agent.events import TextDelta, ToolResult
from artifact_chat.services.knowledge import KnowledgeEntry, KnowledgeResult
from artifact_chat.services.scaffold import ScaffoldCommandError

MODEL = "test-model"


async def run_turn(service, store, chat, message):
    await store.add_message(chat["id"], "user", message)
    return [event.to_dict() async for event in service.stream(chat, message, MODEL)]


async def assistant_messages(store, chat):
    return [m for m in await store.get_messages(chat["id"]) if m["role"] == "assistant"]


@pytest.mark.asyncio
async def test_text_deltas_stream_in_order_and_persist(sqlite_store, chat, make_service):
    service, engine = make_service([TextDelta("Hi"), TextDelta(" there")])

    events = await run_turn(service, sqlite_store, chat, "Say hi")

    assert events == [
        {"type": "text", "content": "Hi"},
        {"type": "text", "content": " there"},
    ]
    [assistant] = await assistant_messages(sqlite_store, chat)
    assert assistant["parts"]["text"] == "Hi there"
    assert engine.calls[0]["history"][0].content == "Say hi"


@pytest.mark.asyncio
async def test_artifact_tool_emits_artifact_event(sqlite_store, chat, make_service):
    service, engine = make_service(
        [
            CallTool(
                "create_artifact",
                {"name": "Circle", "purpose": "A simple red circle graphic", "type": "svg"},
            ),
            TextDelta("Here's your circle."),
        ]
    )

    events = await run_turn(service, sqlite_store, chat, "Create a simple SVG of a circle")

    assert "create_artifact" in engine.calls[0]["tools"]
    assert len(events) == 2
    artifact_event, text_event = events
    assert artifact_event["type"] == "artifact"
    assert set(artifact_event["artifact"]) == {"id", "identifier", "type", "title", "language"}
    assert artifact_event["artifact"]["type"] == "svg"
    assert artifact_event["artifact"]["title"] == "Circle"
    assert artifact_event["artifact"]["language"] is None
    assert text_event == {"type": "text", "content": "Here's your circle."}

    [assistant] = await assistant_messages(sqlite_store, chat)
    assert assistant["parts"]["text"] == "Here's your circle."
    artifact = await sqlite_store.get_artifact(artifact_event["artifact"]["id"])
    assert artifact["message_id"] == assistant["id"]


@pytest.mark.asyncio
async def test_plain_question_offers_no_optional_tools(sqlite_store, chat, make_service):
    service, engine = make_service([TextDelta("4")])

    events = await run_turn(service, sqlite_store, chat, "What is 2+2?")

    assert events == [{"type": "text", "content": "4"}]
    assert engine.calls[0]["tools"] == ["search_knowledge"]
    assert engine.calls[0]["max_steps"] == 2


@pytest.mark.asyncio
async def test_failure_after_text_keeps_partial_message(sqlite_store, chat, make_service):
    service, _ = make_service([TextDelta("Partial"), RuntimeError("connection reset")])

    events = await run_turn(service, sqlite_store, chat, "Tell me a story")

    assert events == [
        {"type": "text", "content": "Partial"},
        {"type": "error", "content": STREAM_ERROR_MESSAGE},
    ]
    [assistant] = await assistant_messages(sqlite_store, chat)
    assert assistant["parts"]["text"] == "Partial"


@pytest.mark.asyncio
async def test_empty_completion_deletes_placeholder(sqlite_store, chat, make_service, title_dispatcher):
    service, _ = make_service([])

    events = await run_turn(service, sqlite_store, chat, "Hello")

    assert events == []
    assert await assistant_messages(sqlite_store, chat) == []
    assert title_dispatcher.dispatched == []


@pytest.mark.asyncio
async def test_failure_before_text_rolls_back_artifacts(sqlite_store, chat, make_service):
    service, _ = make_service(
        [
            CallTool(
                "create_artifact",
                {"name": "Chart", "purpose": "Bar chart of monthly sales", "type": "react"},
            ),
            RuntimeError("engine died"),
        ]
    )

    events = await run_turn(service, sqlite_store, chat, "Build a chart")

    assert events[0]["type"] == "artifact"
    assert events[-1] == {"type": "error", "content": STREAM_ERROR_MESSAGE}
    assert await assistant_messages(sqlite_store, chat) == []
    assert await sqlite_store.get_artifact(events[0]["artifact"]["id"]) is None


@pytest.mark.asyncio
async def test_error_message_does_not_leak_exception(sqlite_store, chat, make_service):
    service, _ = make_service([RuntimeError("secret database password")])

    events = await run_turn(service, sqlite_store, chat, "Hello")

    assert events == [{"type": "error", "content": STREAM_ERROR_MESSAGE}]
    assert await assistant_messages(sqlite_store, chat) == []


@pytest.mark.asyncio
async def test_tool_error_results_are_absorbed(sqlite_store, chat, make_service):
    service, _ = make_service(
        [
            CallTool("generate_laravel_model", {"name": "blog_post", "fields": "", "with": "none"}),
            TextDelta("Could not do that."),
        ]
    )

    events = await run_turn(service, sqlite_store, chat, "Make model for blog posts")

    assert events == [{"type": "text", "content": "Could not do that."}]
    assert all("Error" not in e.get("content", "") for e in events)


@pytest.mark.asyncio
async def test_raising_tool_does_not_abort_turn(sqlite_store, chat, make_service):
    service, _ = make_service(
        [
            CallTool(
                "generate_laravel_model",
                {"name": "Post", "fields": "title:string", "with": "migration"},
            ),
            TextDelta("Done."),
        ],
        scaffold=FakeScaffoldRunner(error=ScaffoldCommandError("artisan missing")),
    )

    events = await run_turn(service, sqlite_store, chat, "Create a migration")

    assert events == [{"type": "text", "content": "Done."}]


@pytest.mark.asyncio
async def test_scaffold_result_is_narrated(sqlite_store, chat, make_service):
    service, _ = make_service(
        [
            CallTool(
                "generate_laravel_model",
                {"name": "Post", "fields": "title:string", "with": "none"},
            ),
            TextDelta("Created it."),
        ]
    )

    events = await run_turn(service, sqlite_store, chat, "Generate an eloquent model")

    assert events[0]["content"].startswith("\n\n✓ Created model: app/Models/Post.php")
    [assistant] = await assistant_messages(sqlite_store, chat)
    assert assistant["parts"]["text"] == events[0]["content"] + "Created it."


@pytest.mark.asyncio
async def test_knowledge_results_are_narrated(sqlite_store, chat, make_service):
    knowledge = FakeKnowledgeService(
        result=KnowledgeResult(
            success=True, entries=[KnowledgeEntry(id=1, title="Conduit", content="A CLI tool.")]
        )
    )
    service, _ = make_service(
        [CallTool("search_knowledge", {"query": "conduit"}), TextDelta("Conduit is a CLI.")],
        knowledge=knowledge,
    )

    events = await run_turn(service, sqlite_store, chat, "What is Conduit?")

    assert events[0]["content"].startswith("\n\n**Knowledge Base Results:**\n\nFound 1 relevant")
    assert "### 1. Conduit" in events[0]["content"]
    assert events[1] == {"type": "text", "content": "Conduit is a CLI."}


@pytest.mark.asyncio
async def test_unknown_artifact_marker_is_ignored(sqlite_store, chat, make_service):
    service, _ = make_service(
        [
            ToolResult("create_artifact", "Artifact created successfully: [artifact:deadbeef-0000] - X"),
            TextDelta("ok"),
        ]
    )

    events = await run_turn(service, sqlite_store, chat, "hello")

    assert events == [{"type": "text", "content": "ok"}]


@pytest.mark.asyncio
async def test_model_without_tools_gets_plain_prompt(sqlite_store, chat, make_service, monkeypatch):
    monkeypatch.setattr(client_module, "model_supports_tools", lambda model: False)
    service, engine = make_service([TextDelta("I can only talk.")])

    await run_turn(service, sqlite_store, chat, "Create a diagram for me")

    call = engine.calls[0]
    assert call["tools"] == []
    assert "TOOL USAGE RULES" not in call["system_prompt"]


@pytest.mark.asyncio
async def test_web_search_offered_when_configured(sqlite_store, chat, make_service):
    service, engine = make_service([TextDelta("News.")], web_search=FakeWebSearch(enabled=True))

    await run_turn(service, sqlite_store, chat, "What is the latest news?")

    assert engine.calls[0]["tools"] == ["search_knowledge", "search_web"]
    assert "search_web" in engine.calls[0]["system_prompt"]


@pytest.mark.asyncio
async def test_web_search_skipped_when_not_configured(sqlite_store, chat, make_service):
    service, engine = make_service([TextDelta("News.")], web_search=FakeWebSearch(enabled=False))

    await run_turn(service, sqlite_store, chat, "What is the latest news?")

    assert "search_web" not in engine.calls[0]["tools"]


@pytest.mark.asyncio
async def test_first_exchange_dispatches_title(sqlite_store, chat, make_service, title_dispatcher):
    service, _ = make_service([TextDelta("Hello!")])

    await run_turn(service, sqlite_store, chat, "Hi")

    assert title_dispatcher.dispatched == [chat["id"]]


@pytest.mark.asyncio
async def test_title_not_dispatched_on_third_message(sqlite_store, chat, make_service, title_dispatcher):
    await sqlite_store.add_message(chat["id"], "user", "earlier")
    await sqlite_store.add_message(chat["id"], "assistant", "reply")
    service, _ = make_service([TextDelta("Again")])

    await run_turn(service, sqlite_store, chat, "Hi")

    assert title_dispatcher.dispatched == []


@pytest.mark.asyncio
async def test_history_includes_prior_turns(sqlite_store, chat, make_service):
    await sqlite_store.add_message(chat["id"], "user", "First message")
    await sqlite_store.add_message(chat["id"], "assistant", "First response")
    service, engine = make_service([TextDelta("Second response")])

    await run_turn(service, sqlite_store, chat, "Second message")

    history = engine.calls[0]["history"]
    assert [(m.role, m.content) for m in history[:3]] == [
        ("user", "First message"),
        ("assistant", "First response"),
        ("user", "Second message"),
    ]
    assert await sqlite_store.count_messages(chat["id"]) == 4


@pytest.mark.asyncio
async def test_disconnect_before_text_rolls_back(sqlite_store, chat, make_service):
    service, _ = make_service(
        [
            CallTool(
                "create_artifact",
                {"name": "Form", "purpose": "Contact form with validation", "type": "html"},
            ),
            TextDelta("never sent"),
        ]
    )
    await sqlite_store.add_message(chat["id"], "user", "Build a form")

    stream = service.stream(chat, "Build a form", MODEL)
    first = await stream.__anext__()
    await stream.aclose()

    assert first.type == "artifact"
    assert await assistant_messages(sqlite_store, chat) == []
    assert await sqlite_store.get_artifact(first.artifact["id"]) is None


async def consume_until_cancelled(service, chat, message):
    """Read the stream in a task group and cancel it once the first event arrives."""
    received = []
    first_event = anyio.Event()

    async def consume():
        async for event in service.stream(chat, message, MODEL):
            received.append(event)
            first_event.set()

    async with anyio.create_task_group() as tg:
        tg.start_soon(consume)
        await first_event.wait()
        tg.cancel_scope.cancel()
    return received


@pytest.mark.asyncio
async def test_cancelled_stream_before_text_rolls_back(sqlite_store, chat, make_service):
    service, _ = make_service(
        [
            CallTool(
                "create_artifact",
                {"name": "Form", "purpose": "Contact form with validation", "type": "html"},
            ),
            Hang(),
        ]
    )
    await sqlite_store.add_message(chat["id"], "user", "Build a form")

    received = await consume_until_cancelled(service, chat, "Build a form")

    assert [e.type for e in received] == ["artifact"]
    assert await assistant_messages(sqlite_store, chat) == []
    assert await sqlite_store.get_artifact(received[0].artifact["id"]) is None


@pytest.mark.asyncio
async def test_cancelled_stream_after_text_keeps_partial(sqlite_store, chat, make_service):
    service, _ = make_service([TextDelta("Partial"), Hang()])
    await sqlite_store.add_message(chat["id"], "user", "Tell me a story")

    received = await consume_until_cancelled(service, chat, "Tell me a story")

    assert [e.to_dict() for e in received] == [{"type": "text", "content": "Partial"}]
    [assistant] = await assistant_messages(sqlite_store, chat)
    assert assistant["parts"]["text"] == "Partial"
