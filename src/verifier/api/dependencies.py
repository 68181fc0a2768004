from __future__ import annotations

from fastapi import Depends, HTTPException, status

from ..config import load_settings
from ..domain.errors import ModelUnavailableError
from ..infrastructure.verification_store import VerificationStore, get_store
from ..services.analysis import AnalysisService
from ..services.chat_model import ChatModel, get_chat_model
from ..services.verification_service import VerificationService


def get_model() -> ChatModel:
    try:
        return get_chat_model()
    except ModelUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def get_verification_service(
    store: VerificationStore = Depends(get_store),
    model: ChatModel = Depends(get_model),
) -> VerificationService:
    return VerificationService(store, model)


def get_analysis_service(model: ChatModel = Depends(get_model)) -> AnalysisService:
    return AnalysisService(model, chunk_size=load_settings().analysis_chunk_size)
