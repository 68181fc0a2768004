from __future__ import annotations

import asyncio
from contextlib import aclosing
import logging
from typing import AsyncIterator, List, Optional, Sequence

from ..domain.messages import CanonicalMessage, NormalizedMessage
from ..domain.verification_models import ChatMessage, VerificationSession
from ..infrastructure.verification_store import VerificationStore
from ..observability.metrics import STREAM_CHUNKS, STREAMS
from .chat_model import ChatModel
from .chunk_protocol import encode_chunk
from .context_builder import VerificationContext


LOG = logging.getLogger("verifier.stream")


class CompletionPipeline:
    """Streams a model answer to the client and stores it once it is complete.

    The user turn is written before the model is called. The assistant turn
    is written at most once, after the consumer has pulled every chunk, and
    only when the model finished cleanly with non-empty text.
    """

    def __init__(self, store: VerificationStore, model: ChatModel) -> None:
        self._store = store
        self._model = model

    async def persist_user_message(
        self,
        session: VerificationSession,
        message: Optional[NormalizedMessage],
    ) -> Optional[ChatMessage]:
        if message is None:
            return None
        return await self._store.add_message(session.session_id, "user", message.persisted_text)

    async def start(self, session: VerificationSession, context: VerificationContext) -> AsyncIterator[str]:
        """Persist the incoming user turn, then hand back the chunk stream."""
        await self.persist_user_message(session, context.last_user_message)
        return self.stream(session, context.messages)

    async def stream(
        self,
        session: VerificationSession,
        messages: Sequence[CanonicalMessage],
    ) -> AsyncIterator[str]:
        fragments: List[str] = []
        emitted = 0
        outcome = "failed"
        LOG.info(
            "stream_started",
            extra={"session_id": session.session_id, "messages": len(messages)},
        )
        try:
            async with aclosing(self._model.stream(messages)) as upstream:
                async for fragment in upstream:
                    if not fragment:
                        continue
                    LOG.debug("stream_fragment", extra={"session_id": session.session_id, "length": len(fragment)})
                    chunk = encode_chunk(fragment)
                    if not chunk:
                        continue
                    # The stored answer is exactly what the client was sent
                    fragments.append(fragment)
                    emitted += 1
                    STREAM_CHUNKS.inc()
                    yield chunk

            answer = "".join(fragments)
            if answer:
                await self._store.add_message(session.session_id, "assistant", answer)
            outcome = "completed"
            LOG.info(
                "stream_completed",
                extra={"session_id": session.session_id, "chunks": emitted, "length": len(answer)},
            )
        except (asyncio.CancelledError, GeneratorExit):
            outcome = "cancelled"
            LOG.warning(
                "stream_cancelled",
                extra={"session_id": session.session_id, "chunks_before_cancel": emitted},
            )
            raise
        except Exception:
            LOG.exception("stream_failed session_id=%s chunks=%d", session.session_id, emitted)
            raise
        finally:
            STREAMS.labels(outcome=outcome).inc()
