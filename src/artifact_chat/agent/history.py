from dataclasses import dataclass


@dataclass(frozen=True)
class HistoryMessage:
    role: str  # "user" or "assistant"
    content: str


def build_history(messages: list[dict]) -> list[HistoryMessage]:
    """Map stored messages (already in creation order) to role-tagged history entries."""
    history = []
    for msg in messages:
        role = msg["role"]
        if role not in ("user", "assistant"):
            raise ValueError(f"Unknown message role: {role}")
        parts = msg.get("parts") or {}
        history.append(HistoryMessage(role=role, content=parts.get("text") or ""))
    return history
