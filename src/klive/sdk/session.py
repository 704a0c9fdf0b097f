from __future__ import annotations

from typing import List, Optional

from ..models.contracts import ChatConfig, ChatRequest, ChatResult, ChatTurn
from .client import KnowledgeClient


class ChatSession:
    """Keeps the conversation history for a playground-style chat.

    The gateway and client are stateless, so each call replays the turns
    collected so far. A turn is only recorded once the assistant answered.
    """

    def __init__(
        self,
        client: KnowledgeClient,
        tenant_slug: str,
        config: Optional[ChatConfig] = None,
    ) -> None:
        self._client = client
        self.tenant_slug = tenant_slug
        self.config = config
        self.history: List[ChatTurn] = []

    def send(self, message: str) -> ChatResult:
        request = ChatRequest(
            message=message,
            tenant_slug=self.tenant_slug,
            conversation_history=list(self.history),
            config=self.config,
        )
        result = self._client.chat(request)
        self.history.append(ChatTurn(role="visitor", content=message))
        self.history.append(ChatTurn(role="assistant", content=result.response))
        return result

    def clear(self) -> None:
        self.history.clear()


__all__ = ["ChatSession"]
