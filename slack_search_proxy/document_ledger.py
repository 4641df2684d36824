"""Per-user usage aggregates in a transactional document store."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import PersistenceError
from .models import Identity
from .storage import COMMIT_TIME, DocumentStore

logger = logging.getLogger(__name__)

DEBUG_COLLECTION = "_debug"
DEBUG_DOC_ID = "connectivity-test"


def split_name(full_name: str) -> tuple[str, str]:
    """Split a display name on its first space into (first, rest)."""

    first, _, rest = (full_name or "").strip().partition(" ")
    return first or "Unknown", rest


def usage_doc_id(identity: Identity) -> str:
    return f"{identity.team_id}_{identity.user_id}"


class DocumentUsageLedger:
    def __init__(self, store: Optional[DocumentStore], collection: str = "userStats") -> None:
        self.store = store
        self.collection = collection

    @property
    def enabled(self) -> bool:
        return self.store is not None

    @staticmethod
    def apply_question(identity: Identity, current: Optional[dict[str, Any]]) -> dict[str, Any]:
        """Fields to merge into the entry for one more question."""

        user_name = identity.user_name or "Unknown User"
        first_name, last_name = split_name(user_name)
        if current is None:
            return {
                "userId": identity.user_id,
                "userName": user_name,
                "firstName": first_name,
                "lastName": last_name,
                "teamId": identity.team_id,
                "teamName": identity.team_name,
                "questionCount": 1,
                "firstQuestionAt": COMMIT_TIME,
                "lastQuestionAt": COMMIT_TIME,
                "firstSeen": COMMIT_TIME,
                "lastSeen": COMMIT_TIME,
            }
        return {
            "questionCount": int(current.get("questionCount") or 0) + 1,
            "lastQuestionAt": COMMIT_TIME,
            "userName": user_name,
            "firstName": first_name,
            "lastName": last_name,
            "teamName": identity.team_name,
            "lastSeen": COMMIT_TIME,
        }

    async def record_question(self, identity: Identity) -> bool:
        if self.store is None:
            logger.debug("Document store not configured, skipping user tracking")
            return False
        try:
            await self.store.transact(
                self.collection,
                usage_doc_id(identity),
                lambda current: self.apply_question(identity, current),
            )
        except PersistenceError as exc:
            logger.error("Error updating user stats for %s: %s", identity.key, exc)
            return False
        logger.info("User stats updated for %s (%s)", identity.user_name, identity.key)
        return True

    async def probe(self) -> dict[str, Any]:
        """Write and delete a throwaway document to prove connectivity."""

        if self.store is None:
            return {}
        try:
            await self.store.set(DEBUG_COLLECTION, DEBUG_DOC_ID, {"timestamp": COMMIT_TIME, "test": True})
            await self.store.delete(DEBUG_COLLECTION, DEBUG_DOC_ID)
        except PersistenceError as exc:
            return {"connectivityTest": "failed", "error": str(exc)}
        return {"connectivityTest": "success", "testDocId": DEBUG_DOC_ID}


__all__ = ["DocumentUsageLedger", "split_name", "usage_doc_id"]
