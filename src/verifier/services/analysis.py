from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator, List, Sequence

from ..domain.messages import CanonicalMessage, Medium
from ..domain.verification_models import VerificationIntent
from .chat_model import ChatModel
from .prompts import DEFAULT_CHUNK_SIZE, arechunk, build_simplified_prompt


LOG = logging.getLogger("verifier.analysis")


class AnalysisService:
    """Single-shot analysis: one prompt, one user turn, nothing persisted."""

    def __init__(self, model: ChatModel, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._model = model
        self._chunk_size = chunk_size

    def build_messages(
        self,
        request_kind: VerificationIntent,
        user_input: str,
        media: Sequence[Medium] = (),
    ) -> List[CanonicalMessage]:
        return [
            CanonicalMessage(role="system", text=build_simplified_prompt(request_kind)),
            CanonicalMessage(role="user", text=user_input, media=tuple(media)),
        ]

    async def _fragments(self, messages: Sequence[CanonicalMessage]) -> AsyncIterator[str]:
        count = 0
        total = 0
        try:
            async with aclosing(self._model.stream(messages)) as upstream:
                async for content in upstream:
                    if not content:
                        continue
                    count += 1
                    total += len(content)
                    LOG.debug("analysis_fragment", extra={"index": count, "length": len(content), "total": total})
                    yield content
        except GeneratorExit:
            LOG.warning("analysis_cancelled", extra={"fragments": count})
            raise
        except Exception:
            LOG.exception("analysis_failed after %d fragment(s)", count)
            raise
        LOG.info("analysis_completed", extra={"fragments": count, "length": total})

    async def _rechunked(self, messages: Sequence[CanonicalMessage]) -> AsyncIterator[str]:
        async with aclosing(self._fragments(messages)) as fragments:
            async with aclosing(arechunk(fragments, self._chunk_size)) as pieces:
                async for piece in pieces:
                    yield piece

    def stream_analysis(
        self,
        request_kind: VerificationIntent,
        user_input: str,
        media: Sequence[Medium] = (),
    ) -> AsyncIterator[str]:
        LOG.info(
            "analysis_started",
            extra={"request_kind": request_kind.value, "images": len(media), "input_length": len(user_input)},
        )
        messages = self.build_messages(request_kind, user_input, media)
        return self._rechunked(messages)
