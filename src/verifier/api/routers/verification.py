from __future__ import annotations

from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from ...config import load_settings
from ...domain.errors import StorageError
from ...domain.verification_models import SessionWithMessages, VerificationRequest
from ...infrastructure.verification_store import VerificationStore, get_store
from ...services.chunk_protocol import frame_sse
from ...services.verification_service import VerificationService
from ..dependencies import get_verification_service


router = APIRouter(tags=["verification"])

_STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
    "x-vercel-ai-data-stream": "v1",
}


async def _as_sse(chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    async for chunk in chunks:
        yield frame_sse(chunk)


@router.post("/chat", response_class=StreamingResponse)
async def verify_chat(
    req: VerificationRequest,
    service: VerificationService = Depends(get_verification_service),
) -> StreamingResponse:
    try:
        chunks = await service.open_stream(req)
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Verification storage unavailable",
        ) from exc

    if load_settings().stream_framing == "sse":
        return StreamingResponse(_as_sse(chunks), media_type="text/event-stream", headers=_STREAM_HEADERS)
    return StreamingResponse(chunks, media_type="text/plain; charset=utf-8", headers=_STREAM_HEADERS)


@router.get("/orders/{order_id}/session", response_model=SessionWithMessages)
async def get_latest_session(
    order_id: str,
    store: VerificationStore = Depends(get_store),
) -> SessionWithMessages:
    try:
        session = await store.latest_session(order_id)
        if not session:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
        messages = await store.list_messages(session.session_id)
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Verification storage unavailable",
        ) from exc
    return SessionWithMessages(session=session, messages=messages)
