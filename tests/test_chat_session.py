from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from klive.models import ChatConfig
from klive.sdk import ChatSession, KnowledgeClient, RequestFailure


def _reply(text: str) -> dict:
    return {
        "response": text,
        "confidence": 0.8,
        "intent": "question",
        "shouldEscalate": False,
        "retrievedChunks": [],
        "tokenUsage": 10,
        "processingTime": 90,
    }


def test_session_replays_history() -> None:
    bodies: List[dict] = []
    replies = iter(["Hello there", "We open at 9"])

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=_reply(next(replies)))

    client = KnowledgeClient(
        base_url="http://gateway.test/api",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    session = ChatSession(client, "acme", config=ChatConfig(language="vi"))

    session.send("Hi")
    session.send("When do you open?")

    assert bodies[0]["conversationHistory"] == []
    assert bodies[0]["config"] == {"language": "vi"}
    assert bodies[1]["conversationHistory"] == [
        {"role": "visitor", "content": "Hi"},
        {"role": "assistant", "content": "Hello there"},
    ]
    assert len(session.history) == 4

    session.clear()
    assert session.history == []


def test_failed_turn_is_not_recorded() -> None:
    client = KnowledgeClient(
        base_url="http://gateway.test/api",
        http_client=httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "LLM down"}))
        ),
    )
    session = ChatSession(client, "acme")

    with pytest.raises(RequestFailure):
        session.send("Hi")

    assert session.history == []
