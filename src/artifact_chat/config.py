import os
from pathlib import Path

PROJECT_DIR = Path(__file__).resolve().parent.parent.parent
DATA_DIR = Path(os.environ.get("DATA_DIR", str(PROJECT_DIR / "data")))
SQLITE_PATH = DATA_DIR / "chat.db"

PORT = int(os.environ.get("PORT", "19877"))
ROOT_PATH = os.environ.get("ROOT_PATH", "")

DEFAULT_MODEL = os.environ.get("DEFAULT_MODEL", "claude-sonnet-4-5-20250929")
# Models listed here are streamed without tool schemas
TOOLLESS_MODELS = frozenset(
    m.strip() for m in os.environ.get("TOOLLESS_MODELS", "").split(",") if m.strip()
)
MAX_TOOL_STEPS = 2
MAX_MESSAGE_LENGTH = 10_000

ARTIFACT_MODEL = os.environ.get("ARTIFACT_MODEL", "claude-sonnet-4-5-20250929")
DIAGRAM_MODEL = os.environ.get("DIAGRAM_MODEL", "claude-haiku-4-5-20251001")
TITLE_MODEL = os.environ.get("TITLE_MODEL", "claude-haiku-4-5-20251001")

KNOWLEDGE_CLI = os.environ.get("KNOWLEDGE_CLI", "conduit")
KNOWLEDGE_TIMEOUT_SECS = 30
KNOWLEDGE_RESULT_LIMIT = 5

SCAFFOLD_PROJECT_DIR = os.environ.get("SCAFFOLD_PROJECT_DIR", "")
SCAFFOLD_PHP_BINARY = os.environ.get("SCAFFOLD_PHP_BINARY", "php")
SCAFFOLD_TIMEOUT_SECS = 60

TAVILY_API_KEY = os.environ.get("TAVILY_API_KEY", "")
WEB_SEARCH_TIMEOUT_SECS = 15
WEB_SEARCH_RESULT_LIMIT = 5


def model_supports_tools(model: str) -> bool:
    return model not in TOOLLESS_MODELS
