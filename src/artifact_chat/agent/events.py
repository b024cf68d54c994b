import json
from dataclasses import dataclass, field
from typing import Any

# --- Completion engine events (upstream) ---


@dataclass(frozen=True)
class TextDelta:
    delta: str


@dataclass(frozen=True)
class ToolCall:
    tool_name: str
    args: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    tool_name: str
    result: str


@dataclass(frozen=True)
class StreamDone:
    pass


EngineEvent = TextDelta | ToolCall | ToolResult | StreamDone

ARTIFACT_EVENT_FIELDS = ("id", "identifier", "type", "title", "language")


# --- Wire events (downstream) ---


@dataclass
class StreamEvent:
    """One line of the NDJSON response body."""

    type: str  # "text", "artifact", "error"
    content: str = ""
    artifact: dict[str, Any] | None = None

    @classmethod
    def text(cls, content: str) -> "StreamEvent":
        return cls(type="text", content=content)

    @classmethod
    def error(cls, content: str) -> "StreamEvent":
        return cls(type="error", content=content)

    @classmethod
    def from_artifact(cls, artifact: dict) -> "StreamEvent":
        # Raw content stays out of the wire event; clients fetch it separately
        return cls(
            type="artifact",
            artifact={key: artifact.get(key) for key in ARTIFACT_EVENT_FIELDS},
        )

    def to_dict(self) -> dict:
        if self.type == "artifact":
            return {"type": "artifact", "artifact": self.artifact}
        return {"type": self.type, "content": self.content}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
