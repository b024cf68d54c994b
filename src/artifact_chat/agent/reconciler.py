import logging

logger = logging.getLogger(__name__)


def should_regenerate_title(message_count: int) -> bool:
    return message_count == 2 or message_count % 10 == 0


class PersistenceReconciler:
    """Keeps the assistant placeholder row in step with a streamed turn."""

    def __init__(self, store, title_dispatcher) -> None:
        self._store = store
        self._titles = title_dispatcher

    async def create_placeholder(self, chat_id: str) -> dict:
        return await self._store.add_message(chat_id, "assistant", "")

    async def finalize(
        self, chat_id: str, message_id: str, text: str, artifact_ids: list[str]
    ) -> bool:
        """Store the final text, or drop the placeholder if the turn produced nothing.

        Returns True if the message was kept.
        """
        if not text and not artifact_ids:
            await self._store.delete_message(message_id)
            logger.info("Discarded empty assistant message %s", message_id)
            return False

        await self._store.update_message_text(message_id, text)
        await self._store.touch_chat(chat_id)

        count = await self._store.count_messages(chat_id)
        if should_regenerate_title(count):
            self._titles.dispatch(chat_id)
        return True

    async def cleanup(self, message_id: str | None, text: str) -> None:
        """Settle a failed turn.

        Text already shown to the user is kept; a turn with no visible text is
        rolled back along with any artifacts it created.
        """
        if message_id is None:
            return
        if text:
            await self._store.update_message_text(message_id, text)
            return
        # Artifacts go with the message (ON DELETE CASCADE)
        await self._store.delete_message(message_id)
        logger.info("Rolled back assistant message %s", message_id)
