"""Chat API — conversational SBC consultant."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.deps import get_chat_session, get_llm_client, get_store
from app.services.chat_service import ChatSession
from app.services.llm_client import LLMClient
from app.services.report_store import ReportStore

logger = logging.getLogger("sbc-chat-routes")

router = APIRouter(prefix="/api/chat", tags=["Consultant Chat"])


class MessageRequest(BaseModel):
    text: str = Field(..., max_length=4000)


def _transcript(chat: ChatSession) -> dict:
    return {
        "session_id": chat.session_id,
        "is_loading": chat.is_loading,
        "messages": [m.model_dump(mode="json") for m in chat.messages],
    }


@router.post("/sessions")
async def create_session(
    report_store: ReportStore = Depends(get_store),
    client: LLMClient = Depends(get_llm_client),
):
    chat = ChatSession(client)
    report_store.put_chat(chat)
    logger.info(f"Chat session {chat.session_id} created")
    return _transcript(chat)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, chat: ChatSession = Depends(get_chat_session)):
    return _transcript(chat)


@router.post("/sessions/{session_id}/messages")
async def send_message(
    session_id: str,
    req: MessageRequest,
    chat: ChatSession = Depends(get_chat_session),
):
    """
    Send one user turn. Blank text is ignored (reply is null). Provider
    failures come back as a single apologetic model message, not an error.
    """
    reply = await chat.send(req.text)
    return {
        "reply": reply.model_dump(mode="json") if reply else None,
        **_transcript(chat),
    }
