from __future__ import annotations

import logging
from typing import AsyncIterator

from ..domain.verification_models import VerificationRequest
from ..infrastructure.verification_store import VerificationStore
from .chat_model import ChatModel
from .completion_pipeline import CompletionPipeline
from .context_builder import build_context
from .session_resolver import SessionResolver


logger = logging.getLogger("verifier.service")


class VerificationService:
    def __init__(self, store: VerificationStore, model: ChatModel) -> None:
        self._resolver = SessionResolver(store)
        self._pipeline = CompletionPipeline(store, model)

    async def open_stream(self, request: VerificationRequest) -> AsyncIterator[str]:
        """Resolve the session and store the user turn, then return the chunk stream.

        Storage failures raise here, before any chunk has been produced.
        """
        session = await self._resolver.resolve(
            request.order_id,
            request.intent,
            request.description,
            len(request.messages),
        )
        # A continued session keeps the intent it was opened with.
        context = build_context(session.intent, request.messages)
        logger.info(
            "verification_request",
            extra={
                "order_id": request.order_id,
                "session_id": session.session_id,
                "intent": session.intent.value,
                "turns": len(request.messages),
            },
        )
        return await self._pipeline.start(session, context)
