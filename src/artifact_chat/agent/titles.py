import asyncio
import logging
import re

from ..config import TITLE_MODEL

logger = logging.getLogger(__name__)

TITLE_SYSTEM_PROMPT = (
    "Generate a short, descriptive title (3-6 words) for this conversation. "
    "Respond with ONLY the title, no quotes, no explanation."
)
TITLE_CONTEXT_MESSAGES = 6
MAX_TITLE_LENGTH = 100


def clean_title(raw: str) -> str:
    title = raw.strip()
    title = re.sub(r"^[#*_`\-\s]+", "", title)
    title = re.sub(r"[#*_`\-\s]+$", "", title)
    title = re.sub(r"^[\"']+|[\"']+$", "", title)
    return title.strip()


class TitleGenerator:
    """Summarizes the latest turns of a chat into a short title."""

    def __init__(self, store, text_generator, model: str = TITLE_MODEL) -> None:
        self._store = store
        self._generator = text_generator
        self._model = model

    async def generate(self, chat_id: str) -> str | None:
        messages = await self._store.get_messages(chat_id, limit=TITLE_CONTEXT_MESSAGES)
        if not messages:
            return None

        summary = "\n".join(f"{m['role']}: {m['parts'].get('text', '')}" for m in messages)
        try:
            response = await self._generator.generate(
                system_prompt=TITLE_SYSTEM_PROMPT,
                prompt=f"Conversation:\n{summary}",
                model=self._model,
            )
        except Exception as e:
            logger.warning("Failed to generate chat title for chat %s: %s", chat_id, e)
            return None

        title = clean_title(response)
        if not title or len(title) > MAX_TITLE_LENGTH:
            return None
        await self._store.update_chat_title(chat_id, title)
        logger.info("Chat %s titled %r", chat_id, title)
        return title


class TitleDispatcher:
    """Fire-and-forget scheduling of title generation."""

    def __init__(self, generator: TitleGenerator) -> None:
        self._generator = generator
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, chat_id: str) -> asyncio.Task:
        task = asyncio.create_task(self._run(chat_id))
        # Hold a reference so the task is not garbage collected mid-flight
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, chat_id: str) -> None:
        try:
            await self._generator.generate(chat_id)
        except Exception:
            logger.exception("Title generation crashed for chat %s", chat_id)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
