from __future__ import annotations

import logging

from ..domain.verification_models import VerificationIntent, VerificationSession
from ..infrastructure.verification_store import VerificationStore


logger = logging.getLogger("verifier.sessions")


class SessionResolver:
    """Maps an incoming turn to the verification session it belongs to.

    A first turn always opens a new session, even when one already exists for
    the order. Later turns continue the newest session for the order; when
    none exists a new one is created instead of reporting it missing.
    """

    def __init__(self, store: VerificationStore) -> None:
        self._store = store

    async def resolve(
        self,
        order_id: str,
        intent: VerificationIntent,
        description: str,
        turn_count: int,
    ) -> VerificationSession:
        if turn_count == 1:
            session = await self._store.create_session(order_id, intent, description)
            logger.info("session_created", extra={"order_id": order_id, "session_id": session.session_id})
            return session

        session = await self._store.latest_session(order_id)
        if session is not None:
            logger.debug("session_reused", extra={"order_id": order_id, "session_id": session.session_id})
            return session

        session = await self._store.create_session(order_id, intent, description)
        logger.info(
            "session_missing_created_fallback",
            extra={"order_id": order_id, "session_id": session.session_id, "turn_count": turn_count},
        )
        return session
