from pydantic import BaseModel, Field

from ..config import MAX_MESSAGE_LENGTH


class ChatCreateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    model: str | None = None


class ChatStreamRequest(BaseModel):
    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    model: str | None = None


class ChatOut(BaseModel):
    id: str
    title: str
    model: str
    created_at: str
    updated_at: str


class MessageOut(BaseModel):
    id: str
    chat_id: str
    role: str
    parts: dict
    created_at: str
    updated_at: str


class ArtifactOut(BaseModel):
    id: str
    message_id: str
    identifier: str
    type: str
    title: str
    language: str | None
    content: str
    version: int
    created_at: str
    updated_at: str


class ChatDetailOut(BaseModel):
    chat: ChatOut
    messages: list[MessageOut]
    artifacts: list[ArtifactOut]
