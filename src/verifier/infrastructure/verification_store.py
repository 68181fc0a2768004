from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from threading import RLock
from typing import Dict, List, Optional, Protocol
import logging
import uuid

from ..config import load_settings
from ..domain.verification_models import ChatMessage, VerificationIntent, VerificationSession


logger = logging.getLogger("verifier.store")


class VerificationStore(Protocol):
    async def create_session(self, order_id: str, intent: VerificationIntent, description: str) -> VerificationSession: ...

    async def latest_session(self, order_id: str) -> Optional[VerificationSession]: ...

    async def get_session(self, session_id: str) -> Optional[VerificationSession]: ...

    async def add_message(self, session_id: str, role: str, content: str) -> ChatMessage: ...

    async def list_messages(self, session_id: str) -> List[ChatMessage]: ...


def now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


@dataclass
class _Session:
    session_id: str
    order_id: str
    intent: VerificationIntent
    description: str
    created_at: str


@dataclass
class _Message:
    message_id: str
    session_id: str
    role: str
    content: str
    created_at: str


class InMemoryVerificationStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, _Session] = {}
        self._by_order: Dict[str, List[str]] = {}
        self._messages: Dict[str, List[_Message]] = {}
        self._lock = RLock()

    def _session_model(self, sess: _Session) -> VerificationSession:
        return VerificationSession(**sess.__dict__)

    def _message_model(self, message: _Message) -> ChatMessage:
        return ChatMessage(**message.__dict__)

    async def create_session(
        self,
        order_id: str,
        intent: VerificationIntent,
        description: str,
    ) -> VerificationSession:
        with self._lock:
            sess = _Session(
                session_id=uuid.uuid4().hex,
                order_id=order_id,
                intent=VerificationIntent(intent),
                description=description,
                created_at=now_iso(),
            )
            self._sessions[sess.session_id] = sess
            self._by_order.setdefault(order_id, []).append(sess.session_id)
            self._messages[sess.session_id] = []
            return self._session_model(sess)

    async def latest_session(self, order_id: str) -> Optional[VerificationSession]:
        with self._lock:
            candidates = [self._sessions[sid] for sid in self._by_order.get(order_id, []) if sid in self._sessions]
            if not candidates:
                return None
            # sorted() is stable, so equal timestamps keep insertion order
            newest = sorted(candidates, key=lambda s: s.created_at)[-1]
            return self._session_model(newest)

    async def get_session(self, session_id: str) -> Optional[VerificationSession]:
        with self._lock:
            sess = self._sessions.get(session_id)
            if not sess:
                return None
            return self._session_model(sess)

    async def add_message(self, session_id: str, role: str, content: str) -> ChatMessage:
        with self._lock:
            if session_id not in self._sessions:
                raise KeyError("Session not found")
            msg = _Message(
                message_id=uuid.uuid4().hex,
                session_id=session_id,
                role=role,
                content=content,
                created_at=now_iso(),
            )
            self._messages.setdefault(session_id, []).append(msg)
            return self._message_model(msg)

    async def list_messages(self, session_id: str) -> List[ChatMessage]:
        with self._lock:
            return [self._message_model(m) for m in self._messages.get(session_id, [])]


_store: VerificationStore | None = None


def get_store() -> VerificationStore:
    global _store
    if _store is not None:
        return _store
    settings = load_settings()
    if settings.store_impl == "mongo":
        from .verification_store_mongo import MongoVerificationStore  # local import to avoid circular dependency

        logger.info("Using Mongo verification store db=%s", settings.mongo_db)
        _store = MongoVerificationStore(settings.mongo_url, settings.mongo_db)
        return _store
    _store = InMemoryVerificationStore()
    return _store


def reset_store() -> None:
    global _store
    _store = None
