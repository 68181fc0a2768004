from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging
import uuid

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from ..domain.errors import StorageError
from ..domain.verification_models import ChatMessage, VerificationIntent, VerificationSession
from .verification_store import now_iso


logger = logging.getLogger("verifier.store")


class MongoVerificationStore:
    """Motor-backed store; every driver failure surfaces as ``StorageError``."""

    def __init__(self, mongo_url: str, mongo_db: str, client: Any = None) -> None:
        self._client = client if client is not None else AsyncIOMotorClient(mongo_url, serverSelectionTimeoutMS=2000)
        db = self._client[mongo_db]
        self._sessions = db["verification_sessions"]
        self._messages = db["chat_messages"]
        self._indexes_ready = False

    async def _ensure_indexes(self) -> None:
        if self._indexes_ready:
            return
        await self._sessions.create_index("session_id", unique=True)
        await self._sessions.create_index([("order_id", ASCENDING), ("created_at", DESCENDING)])
        await self._messages.create_index([("session_id", ASCENDING), ("created_at", ASCENDING)])
        self._indexes_ready = True

    async def create_session(
        self,
        order_id: str,
        intent: VerificationIntent,
        description: str,
    ) -> VerificationSession:
        doc = {
            "session_id": uuid.uuid4().hex,
            "order_id": order_id,
            "intent": VerificationIntent(intent).value,
            "description": description,
            "created_at": now_iso(),
        }
        try:
            await self._ensure_indexes()
            await self._sessions.insert_one(doc)
        except PyMongoError as exc:
            logger.error("mongo_create_session_failed", extra={"order_id": order_id, "err": str(exc)})
            raise StorageError("Failed to create verification session") from exc
        return self._to_session(doc)

    async def latest_session(self, order_id: str) -> Optional[VerificationSession]:
        try:
            doc = await self._sessions.find_one(
                {"order_id": order_id},
                sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
            )
        except PyMongoError as exc:
            raise StorageError("Failed to look up verification session") from exc
        if not doc:
            return None
        return self._to_session(doc)

    async def get_session(self, session_id: str) -> Optional[VerificationSession]:
        try:
            doc = await self._sessions.find_one({"session_id": session_id})
        except PyMongoError as exc:
            raise StorageError("Failed to load verification session") from exc
        if not doc:
            return None
        return self._to_session(doc)

    async def add_message(self, session_id: str, role: str, content: str) -> ChatMessage:
        doc = {
            "message_id": uuid.uuid4().hex,
            "session_id": session_id,
            "role": role,
            "content": content,
            "created_at": now_iso(),
        }
        try:
            await self._ensure_indexes()
            await self._messages.insert_one(doc)
        except PyMongoError as exc:
            logger.error("mongo_add_message_failed", extra={"session_id": session_id, "err": str(exc)})
            raise StorageError("Failed to append chat message") from exc
        return self._to_message(doc)

    async def list_messages(self, session_id: str) -> List[ChatMessage]:
        try:
            cursor = self._messages.find({"session_id": session_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
            docs = await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise StorageError("Failed to list chat messages") from exc
        return [self._to_message(doc) for doc in docs]

    def _to_session(self, doc: Dict[str, Any]) -> VerificationSession:
        data = dict(doc)
        return VerificationSession(
            session_id=str(data.get("session_id")),
            order_id=str(data.get("order_id", "")),
            intent=VerificationIntent(str(data.get("intent", VerificationIntent.COMPLAINT.value)).upper()),
            description=str(data.get("description", "")),
            created_at=str(data.get("created_at", now_iso())),
        )

    def _to_message(self, doc: Dict[str, Any]) -> ChatMessage:
        data = dict(doc)
        return ChatMessage(
            message_id=str(data.get("message_id")),
            session_id=str(data.get("session_id")),
            role=str(data.get("role", "assistant")),
            content=str(data.get("content", "")),
            created_at=str(data.get("created_at", now_iso())),
        )
