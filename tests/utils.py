from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional

from src.verifier.domain.errors import StorageError
from src.verifier.infrastructure.verification_store import InMemoryVerificationStore

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
PNG_DATA_URI = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


class FakeChatModel:
    """Yields canned fragments and records the messages it was called with."""

    def __init__(self, fragments: List[str], error: Optional[Exception] = None, on_call=None) -> None:
        self.fragments = list(fragments)
        self.error = error
        self.on_call = on_call
        self.calls: List[List[Any]] = []
        self.closed = False

    async def stream(self, messages):
        self.calls.append(list(messages))
        if self.on_call is not None:
            await self.on_call()
        try:
            for fragment in self.fragments:
                yield fragment
        except GeneratorExit:
            self.closed = True
            raise
        if self.error is not None:
            raise self.error


class FailingStore(InMemoryVerificationStore):
    def __init__(self, fail_on: str) -> None:
        super().__init__()
        self.fail_on = fail_on

    async def add_message(self, session_id: str, role: str, content: str):
        if self.fail_on == "add_message" or (self.fail_on == "assistant_message" and role == "assistant"):
            raise StorageError("store offline")
        return await super().add_message(session_id, role, content)

    async def create_session(self, order_id, intent, description):
        if self.fail_on == "create_session":
            raise StorageError("store offline")
        return await super().create_session(order_id, intent, description)


def chat_payload(order_id: str, messages: List[Dict[str, Any]], intent: str = "RETURN", description: str = "Zipper broke") -> Dict[str, Any]:
    return {"orderId": order_id, "intent": intent, "description": description, "messages": messages}
