import pytest

from artifact_chat.agent.events import StreamEvent
from artifact_chat.api.ndjson import format_event, ndjson_lines, parse_lines


def test_format_event_is_one_line():
    line = format_event(StreamEvent.text("line one\nline two"))
    assert line.endswith("\n")
    assert line.count("\n") == 1


def test_artifact_event_omits_content():
    event = StreamEvent.from_artifact(
        {"id": "a1", "identifier": "i", "type": "html", "title": "T", "language": "html", "content": "<p/>"}
    )
    assert event.to_dict() == {
        "type": "artifact",
        "artifact": {"id": "a1", "identifier": "i", "type": "html", "title": "T", "language": "html"},
    }


def test_parse_lines_skips_garbage():
    body = '{"type": "text", "content": "a"}\nnot json\n\n[1, 2]\n{"type": "error", "content": "b"}\n'
    assert parse_lines(body) == [
        {"type": "text", "content": "a"},
        {"type": "error", "content": "b"},
    ]


@pytest.mark.asyncio
async def test_ndjson_lines():
    async def events():
        yield StreamEvent.text("x")
        yield StreamEvent.error("y")

    lines = [line async for line in ndjson_lines(events())]
    assert parse_lines(lines) == [{"type": "text", "content": "x"}, {"type": "error", "content": "y"}]
