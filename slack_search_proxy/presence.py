"""Registry of users who completed the OAuth flow."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from .errors import PersistenceError
from .models import Identity, PresenceRecord
from .storage import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

INDEX_KEY = "users:index"


def presence_key(team_id: str, user_id: str) -> str:
    return f"user:{team_id}:{user_id}"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PresenceRegistry:
    """Connect/last-seen records kept in-process and, optionally, remotely.

    The remote store is authoritative for ``list_all`` when configured. The
    two copies are never reconciled; they may diverge transiently.
    """

    def __init__(
        self,
        remote: Optional[KeyValueStore] = None,
        *,
        cache: Optional[KeyValueStore] = None,
        retention_seconds: Optional[int] = None,
        clock: Callable[[], str] = now_iso,
    ) -> None:
        self.cache = cache or InMemoryKeyValueStore()
        self.remote = remote
        self.retention_seconds = retention_seconds
        self._clock = clock

    @property
    def persistent(self) -> bool:
        return self.remote is not None

    async def _connect(
        self, store: KeyValueStore, identity: Identity, now: str, retention: Optional[int]
    ) -> None:
        key = presence_key(identity.team_id, identity.user_id)
        if not await store.exists(key):
            await store.hset(
                key,
                {
                    "connected_at": now,
                    "team_id": identity.team_id,
                    "team": identity.team_name,
                    "user_id": identity.user_id,
                    "user": identity.user_name,
                },
            )
        await store.hset(key, {"last_seen": now})
        await store.sadd(INDEX_KEY, key)
        if retention:
            await store.expire(key, retention)

    async def record_connect(self, identity: Identity) -> None:
        now = self._clock()
        await self._connect(self.cache, identity, now, None)
        if self.remote is None:
            return
        try:
            await self._connect(self.remote, identity, now, self.retention_seconds)
        except PersistenceError as exc:
            logger.error("Could not persist connect for %s: %s", identity.key, exc)

    async def touch(self, identity: Identity) -> None:
        """Refresh ``last_seen``; identity fields ride along so an expired hash comes back whole."""

        now = self._clock()
        key = presence_key(identity.team_id, identity.user_id)
        fields = {
            "team_id": identity.team_id,
            "team": identity.team_name,
            "user_id": identity.user_id,
            "user": identity.user_name,
            "last_seen": now,
        }
        await self.cache.hset(key, fields)
        if self.remote is None:
            return
        try:
            await self.remote.hset(key, fields)
            if self.retention_seconds:
                await self.remote.expire(key, self.retention_seconds)
        except PersistenceError as exc:
            logger.warning("Could not refresh last_seen for %s: %s", identity.key, exc)

    async def list_all(self) -> list[PresenceRecord]:
        """Return every known record; raises ``PersistenceError`` if the remote is down."""

        store = self.remote if self.remote is not None else self.cache
        records = []
        for key in sorted(await store.smembers(INDEX_KEY)):
            data = await store.hgetall(key)
            if data:
                records.append(PresenceRecord.from_hash(data))
        return records


__all__ = ["PresenceRegistry", "presence_key", "INDEX_KEY", "now_iso"]
