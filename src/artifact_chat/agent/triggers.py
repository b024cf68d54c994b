"""Keyword gates deciding which optional tools are offered for a turn."""

ARTIFACT_TRIGGERS: tuple[str, ...] = (
    "create",
    "build",
    "generate",
    "make me",
    "show me",
    "draw",
    "diagram",
    "chart",
    "graph",
    "dashboard",
    "component",
    "visualization",
    "visualize",
    "flowchart",
    "interactive",
    "calculator",
    "form",
    "svg",
    "mermaid",
    "react",
    "vue",
)

SCAFFOLD_TRIGGERS: tuple[str, ...] = (
    "laravel model",
    "eloquent model",
    "create model",
    "generate model",
    "make model",
    "model",
    "migration",
    "eloquent",
    "factory",
    "seeder",
    "laravel",
    "database table",
)


def matches(message: str, triggers) -> bool:
    """Return True if any trigger phrase occurs in the message, ignoring case."""
    lowered = message.lower()
    return any(trigger.lower() in lowered for trigger in triggers)
