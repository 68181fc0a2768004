from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple


DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:3000")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the model client, store and stream transport."""

    openai_api_key: Optional[str]
    openai_base_url: Optional[str]
    openai_model: str
    llm_temperature: float
    llm_timeout: float
    store_impl: str
    mongo_url: str
    mongo_db: str
    stream_framing: str
    analysis_chunk_size: int
    cors_origins: Tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)


def _store_impl() -> str:
    if (os.getenv("DB_MODE") or "").strip().lower() == "mongo":
        return "mongo"
    return (os.getenv("VERIFIER_STORE_IMPL") or "memory").strip().lower()


def _cors_origins() -> Tuple[str, ...]:
    raw = os.getenv("VERIFIER_CORS_ORIGINS")
    if not raw:
        return DEFAULT_CORS_ORIGINS
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


def load_settings() -> Settings:
    """Read settings from the environment.

    Invalid numeric values raise ``ValueError`` at startup rather than being
    silently replaced.
    """
    framing = (os.getenv("VERIFIER_STREAM_FRAMING") or "raw").strip().lower()
    if framing not in ("raw", "sse"):
        raise ValueError(f"Unsupported VERIFIER_STREAM_FRAMING: {framing}")
    chunk_size = int(os.getenv("VERIFIER_ANALYSIS_CHUNK_SIZE", "10"))
    if chunk_size < 1:
        raise ValueError("VERIFIER_ANALYSIS_CHUNK_SIZE must be positive")
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        llm_temperature=float(os.getenv("VERIFIER_LLM_TEMPERATURE", "0.2")),
        llm_timeout=float(os.getenv("VERIFIER_LLM_TIMEOUT", "60")),
        store_impl=_store_impl(),
        mongo_url=os.getenv("MONGO_URL", "mongodb://localhost:27017"),
        mongo_db=os.getenv("MONGO_DB", "verifier"),
        stream_framing=framing,
        analysis_chunk_size=chunk_size,
        cors_origins=_cors_origins(),
    )
