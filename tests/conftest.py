import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Fresh in-memory store and default settings for every test."""
    from src.verifier.infrastructure import verification_store

    for name in (
        "DB_MODE",
        "VERIFIER_STORE_IMPL",
        "VERIFIER_STREAM_FRAMING",
        "VERIFIER_ANALYSIS_CHUNK_SIZE",
        "VERIFIER_CORS_ORIGINS",
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "OPENAI_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)
    verification_store.reset_store()
    yield
    verification_store.reset_store()
