import json
import uuid
from datetime import UTC, datetime

import aiosqlite

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS chats (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT 'New chat',
    model TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    chat_id TEXT NOT NULL REFERENCES chats(id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    parts TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_chat ON messages(chat_id, created_at);

CREATE TABLE IF NOT EXISTS artifacts (
    id TEXT PRIMARY KEY,
    message_id TEXT NOT NULL REFERENCES messages(id) ON DELETE CASCADE,
    identifier TEXT NOT NULL,
    type TEXT NOT NULL,
    title TEXT NOT NULL,
    language TEXT,
    content TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (message_id, identifier, version)
);
"""

MESSAGE_COLUMNS = "id, chat_id, role, parts, created_at, updated_at"
ARTIFACT_COLUMNS = (
    "id, message_id, identifier, type, title, language, content, version, created_at, updated_at"
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _uuid() -> str:
    return str(uuid.uuid4())


def _message_row(row) -> dict:
    msg = dict(row)
    msg["parts"] = json.loads(msg["parts"]) if msg["parts"] else {}
    return msg


class SQLiteStore:
    def __init__(self, path: str) -> None:
        self._path = path
        self._db: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Return the database connection, raising if not initialized."""
        if self._db is None:
            raise RuntimeError("SQLiteStore not initialized — call initialize() first")
        return self._db

    async def initialize(self) -> None:
        self._db = await aiosqlite.connect(self._path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.executescript(SCHEMA_SQL)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    # --- Chats ---

    async def create_chat(self, model: str, title: str = "New chat") -> dict:
        cid = _uuid()
        now = _now()
        await self.db.execute(
            "INSERT INTO chats (id, title, model, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (cid, title, model, now, now),
        )
        await self.db.commit()
        return {"id": cid, "title": title, "model": model, "created_at": now, "updated_at": now}

    async def get_chat(self, chat_id: str) -> dict | None:
        cursor = await self.db.execute(
            "SELECT id, title, model, created_at, updated_at FROM chats WHERE id = ?",
            (chat_id,),
        )
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def update_chat_title(self, chat_id: str, title: str) -> None:
        await self.db.execute(
            "UPDATE chats SET title = ?, updated_at = ? WHERE id = ?",
            (title, _now(), chat_id),
        )
        await self.db.commit()

    async def update_chat_model(self, chat_id: str, model: str) -> None:
        await self.db.execute(
            "UPDATE chats SET model = ?, updated_at = ? WHERE id = ?",
            (model, _now(), chat_id),
        )
        await self.db.commit()

    async def touch_chat(self, chat_id: str) -> None:
        await self.db.execute(
            "UPDATE chats SET updated_at = ? WHERE id = ?",
            (_now(), chat_id),
        )
        await self.db.commit()

    # --- Messages ---

    async def add_message(self, chat_id: str, role: str, text: str) -> dict:
        mid = _uuid()
        now = _now()
        parts = {"text": text}
        await self.db.execute(
            f"INSERT INTO messages ({MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
            (mid, chat_id, role, json.dumps(parts), now, now),
        )
        await self.db.commit()
        return {
            "id": mid,
            "chat_id": chat_id,
            "role": role,
            "parts": parts,
            "created_at": now,
            "updated_at": now,
        }

    async def get_message(self, message_id: str) -> dict | None:
        cursor = await self.db.execute(
            f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE id = ?",
            (message_id,),
        )
        row = await cursor.fetchone()
        return _message_row(row) if row else None

    async def get_messages(self, chat_id: str, limit: int | None = None) -> list[dict]:
        """Return messages oldest-first; with ``limit``, only the most recent ones."""
        if limit is None:
            cursor = await self.db.execute(
                f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE chat_id = ? ORDER BY created_at, rowid",
                (chat_id,),
            )
            rows = await cursor.fetchall()
        else:
            cursor = await self.db.execute(
                f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE chat_id = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (chat_id, limit),
            )
            rows = list(reversed(await cursor.fetchall()))
        return [_message_row(r) for r in rows]

    async def update_message_text(self, message_id: str, text: str) -> None:
        message = await self.get_message(message_id)
        if message is None:
            return
        parts = {**message["parts"], "text": text}
        await self.db.execute(
            "UPDATE messages SET parts = ?, updated_at = ? WHERE id = ?",
            (json.dumps(parts), _now(), message_id),
        )
        await self.db.commit()

    async def delete_message(self, message_id: str) -> None:
        await self.db.execute("DELETE FROM messages WHERE id = ?", (message_id,))
        await self.db.commit()

    async def count_messages(self, chat_id: str) -> int:
        cursor = await self.db.execute(
            "SELECT COUNT(*) FROM messages WHERE chat_id = ?",
            (chat_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    # --- Artifacts ---

    async def create_artifact(
        self,
        message_id: str,
        identifier: str,
        type: str,
        title: str,
        content: str,
        language: str | None = None,
        version: int = 1,
    ) -> dict:
        aid = _uuid()
        now = _now()
        await self.db.execute(
            f"INSERT INTO artifacts ({ARTIFACT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (aid, message_id, identifier, type, title, language, content, version, now, now),
        )
        await self.db.commit()
        return {
            "id": aid,
            "message_id": message_id,
            "identifier": identifier,
            "type": type,
            "title": title,
            "language": language,
            "content": content,
            "version": version,
            "created_at": now,
            "updated_at": now,
        }

    async def get_artifact(self, artifact_id: str) -> dict | None:
        cursor = await self.db.execute(
            f"SELECT {ARTIFACT_COLUMNS} FROM artifacts WHERE id = ?",
            (artifact_id,),
        )
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def get_artifacts_for_message(self, message_id: str) -> list[dict]:
        cursor = await self.db.execute(
            f"SELECT {ARTIFACT_COLUMNS} FROM artifacts WHERE message_id = ? ORDER BY created_at",
            (message_id,),
        )
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def get_artifacts_for_chat(self, chat_id: str) -> list[dict]:
        cursor = await self.db.execute(
            "SELECT a.id, a.message_id, a.identifier, a.type, a.title, a.language, a.content, "
            "a.version, a.created_at, a.updated_at FROM artifacts a "
            "JOIN messages m ON m.id = a.message_id WHERE m.chat_id = ? ORDER BY a.created_at",
            (chat_id,),
        )
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]
