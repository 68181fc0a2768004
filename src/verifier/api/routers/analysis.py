from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from ...domain.messages import Medium
from ...domain.verification_models import VerificationIntent
from ...services.analysis import AnalysisService
from ...services.attachments import guess_image_mime
from ..dependencies import get_analysis_service


router = APIRouter(tags=["analysis"])


@router.post("/analysis", response_class=StreamingResponse)
async def analyze(
    request_type: str = Form(...),
    user_input: str = Form(""),
    images: Optional[List[UploadFile]] = File(default=None),
    service: AnalysisService = Depends(get_analysis_service),
) -> StreamingResponse:
    try:
        kind = VerificationIntent(request_type.strip().upper())
    except ValueError as exc:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown request type: {request_type}",
        ) from exc

    media: List[Medium] = []
    for upload in images or []:
        data = await upload.read()
        if not data:
            continue
        media.append(Medium(mime_type=guess_image_mime(upload.filename, upload.content_type), data=data))

    return StreamingResponse(
        service.stream_analysis(kind, user_input, media),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache, no-transform", "X-Accel-Buffering": "no"},
    )
