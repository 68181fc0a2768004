from __future__ import annotations

from datetime import UTC, datetime
from dotenv import load_dotenv
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..config import load_settings
from ..observability.metrics import metrics_middleware_factory
from .routers.analysis import router as analysis_router
from .routers.verification import router as verification_router

load_dotenv()  # Load environment variables from .env if present (OPENAI_API_KEY, MONGO_URL, etc.)

app = FastAPI(title="Returns & Complaints Verification API", version="0.1.0")

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

app.include_router(verification_router)
app.include_router(analysis_router)

# The web client calls the /api-prefixed routes
app.include_router(verification_router, prefix="/api")
app.include_router(analysis_router, prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(load_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _health_payload() -> dict:
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "components": {
            "api": "ok",
            "store": load_settings().store_impl,
        },
    }


@app.get("/")
def root():
    return {"name": "Returns & Complaints Verification API", "version": "0.1.0"}


@app.get("/health")
def health():
    return _health_payload()


@app.get("/api/health")
def api_health():
    return _health_payload()


@app.get("/metrics")
def metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
