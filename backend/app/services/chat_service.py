"""
Chat provider — conversation with the SBC compliance consultant.

A failed provider call appends exactly one apologetic model message; the
conversation stays usable for the next turn.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from app.models.findings import ChatMessage, ComplianceFinding
from app.services.llm_client import LLMClient, get_system_prompt

logger = logging.getLogger("sbc-chat")

GREETING = (
    "Hello! I am your Saudi Building Code (SBC) consultant. I can help explain regulations, "
    "resolve conflicts, or suggest design fixes. How can I assist you today?"
)
EMPTY_REPLY = "I apologize, I couldn't process that request."
ERROR_REPLY = "I encountered an error connecting to the knowledge base. Please try again."

# Chat roles → LLM message roles
_LLM_ROLES = {"user": "user", "model": "assistant"}


def consult_prompt(finding: ComplianceFinding) -> str:
    """Message seeded into chat by the report's Consult action."""
    return (
        f'Regarding the finding "{finding.description}" (Ref: {finding.reference}): '
        f"{finding.recommendation}. Can you explain?"
    )


class ChatSession:

    def __init__(self, client: Optional[LLMClient] = None, session_id: Optional[str] = None):
        self.client = client or LLMClient()
        self.session_id = session_id or uuid.uuid4().hex
        self.messages: list[ChatMessage] = [
            ChatMessage(id=uuid.uuid4().hex, role="model", text=GREETING)
        ]
        self.is_loading = False

    def _append(self, role: str, text: str) -> ChatMessage:
        msg = ChatMessage(id=uuid.uuid4().hex, role=role, text=text)
        self.messages.append(msg)
        return msg

    def _history(self) -> list[dict]:
        return [{"role": _LLM_ROLES[m.role], "content": m.text} for m in self.messages]

    async def send(self, text: str) -> Optional[ChatMessage]:
        """
        Send one user turn and return the model's reply message.
        Blank input is ignored and returns None.
        """
        if not text or not text.strip():
            return None

        history = self._history()
        self._append("user", text)
        messages = (
            [{"role": "system", "content": get_system_prompt("consultant")}]
            + history
            + [{"role": "user", "content": text}]
        )

        self.is_loading = True
        try:
            reply = await self.client.chat(messages)
        except Exception as e:
            logger.error(f"Chat request failed in session {self.session_id}: {e}")
            return self._append("model", ERROR_REPLY)
        finally:
            self.is_loading = False

        return self._append("model", reply or EMPTY_REPLY)
