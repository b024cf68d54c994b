import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from ..config import DEFAULT_MODEL
from .models import ArtifactOut, ChatCreateRequest, ChatDetailOut, ChatOut, ChatStreamRequest
from .ndjson import NDJSON_HEADERS, ndjson_lines

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/chats", response_model=ChatOut)
async def create_chat(req: ChatCreateRequest, request: Request):
    store = request.app.state.store
    return await store.create_chat(model=req.model or DEFAULT_MODEL, title=req.title or "New chat")


@router.get("/api/chats/{chat_id}", response_model=ChatDetailOut)
async def get_chat(chat_id: str, request: Request):
    store = request.app.state.store
    chat = await store.get_chat(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    messages = await store.get_messages(chat_id)
    artifacts = await store.get_artifacts_for_chat(chat_id)
    return {"chat": chat, "messages": messages, "artifacts": artifacts}


@router.get("/api/artifacts/{artifact_id}", response_model=ArtifactOut)
async def get_artifact(artifact_id: str, request: Request):
    store = request.app.state.store
    artifact = await store.get_artifact(artifact_id)
    if not artifact:
        raise HTTPException(status_code=404, detail="Artifact not found")
    return artifact


@router.post("/api/chats/{chat_id}/stream")
async def stream_chat(chat_id: str, req: ChatStreamRequest, request: Request):
    store = request.app.state.store
    chat_service = request.app.state.chat_service

    chat = await store.get_chat(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")

    user_message = req.message.strip()
    if not user_message:
        raise HTTPException(status_code=422, detail="Message must not be blank")

    model = req.model or chat["model"]
    if model != chat["model"]:
        await store.update_chat_model(chat_id, model)
        chat = {**chat, "model": model}

    await store.add_message(chat_id, "user", user_message)

    events = chat_service.stream(chat, user_message, model)
    return StreamingResponse(
        ndjson_lines(events),
        media_type="text/event-stream",
        headers=NDJSON_HEADERS,
    )
