"""Storage backends shared by the presence registry and the usage ledgers.

Three kinds of store are used:

* ``KeyValueStore``: hashes plus a set, for presence records. The in-process
  cache and Redis implement it.
* ``ContentStore``: a single text blob guarded by a revision tag, for the
  file ledger. GitHub implements it (see ``github_store``).
* ``DocumentStore``: transactional read-then-write of JSON-like documents,
  for the document ledger. Firestore implements it (see ``firestore_store``).

Each protocol also has an in-memory implementation used for local runs and
tests. Backends raise ``PersistenceError`` for every failure.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .errors import PersistenceError, RevisionConflictError


# region Key/value
class KeyValueStore(Protocol):
    async def exists(self, key: str) -> bool: ...

    async def hset(self, key: str, mapping: Mapping[str, str]) -> None: ...

    async def hgetall(self, key: str) -> dict[str, str]: ...

    async def sadd(self, key: str, member: str) -> None: ...

    async def smembers(self, key: str) -> set[str]: ...

    async def expire(self, key: str, seconds: int) -> None: ...


class InMemoryKeyValueStore:
    """Process-local key/value store; contents vanish with the process."""

    def __init__(self) -> None:
        self._hashes: dict[str, dict[str, str]] = {}
        self._sets: dict[str, set[str]] = {}

    async def exists(self, key: str) -> bool:
        return key in self._hashes or key in self._sets

    async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        self._hashes.setdefault(key, {}).update(mapping)

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self._hashes.get(key, {}))

    async def sadd(self, key: str, member: str) -> None:
        self._sets.setdefault(key, set()).add(member)

    async def smembers(self, key: str) -> set[str]:
        return set(self._sets.get(key, set()))

    async def expire(self, key: str, seconds: int) -> None:
        # Process lifetime bounds retention already.
        return None


class RedisKeyValueStore:
    """``KeyValueStore`` backed by ``redis.asyncio``."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def close(self) -> None:
        await self._redis.aclose()

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._redis.exists(key))
        except RedisError as exc:
            raise PersistenceError(f"redis EXISTS failed for {key}") from exc

    async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        try:
            await self._redis.hset(key, mapping=dict(mapping))
        except RedisError as exc:
            raise PersistenceError(f"redis HSET failed for {key}") from exc

    async def hgetall(self, key: str) -> dict[str, str]:
        try:
            return dict(await self._redis.hgetall(key))
        except RedisError as exc:
            raise PersistenceError(f"redis HGETALL failed for {key}") from exc

    async def sadd(self, key: str, member: str) -> None:
        try:
            await self._redis.sadd(key, member)
        except RedisError as exc:
            raise PersistenceError(f"redis SADD failed for {key}") from exc

    async def smembers(self, key: str) -> set[str]:
        try:
            return set(await self._redis.smembers(key))
        except RedisError as exc:
            raise PersistenceError(f"redis SMEMBERS failed for {key}") from exc

    async def expire(self, key: str, seconds: int) -> None:
        try:
            await self._redis.expire(key, seconds)
        except RedisError as exc:
            raise PersistenceError(f"redis EXPIRE failed for {key}") from exc


# endregion


# region Content
@dataclass(frozen=True, slots=True)
class RevisionedContent:
    content: str
    revision: str


class ContentStore(Protocol):
    async def read(self, path: str) -> Optional[RevisionedContent]: ...

    async def write(
        self, path: str, content: str, revision: Optional[str], message: str
    ) -> str: ...


def content_revision(content: str) -> str:
    return hashlib.sha1(content.encode("utf-8")).hexdigest()


class InMemoryContentStore:
    """Content store that enforces revision tags the same way GitHub does."""

    def __init__(self, files: Optional[dict[str, str]] = None) -> None:
        self._files: dict[str, RevisionedContent] = {}
        for path, content in (files or {}).items():
            self._files[path] = RevisionedContent(content, content_revision(content))
        self.commits: list[str] = []

    async def read(self, path: str) -> Optional[RevisionedContent]:
        return self._files.get(path)

    async def write(self, path: str, content: str, revision: Optional[str], message: str) -> str:
        current = self._files.get(path)
        current_revision = current.revision if current else None
        if revision != current_revision:
            raise RevisionConflictError(f"{path} changed since revision {revision}")
        stored = RevisionedContent(content, content_revision(content + message))
        self._files[path] = stored
        self.commits.append(message)
        return stored.revision


# endregion


# region Documents
class _CommitTime:
    def __repr__(self) -> str:
        return "COMMIT_TIME"


COMMIT_TIME: Any = _CommitTime()
"""Field value placeholder the store replaces with the transaction commit time."""

Mutation = Callable[[Optional[dict[str, Any]]], dict[str, Any]]


class DocumentStore(Protocol):
    async def transact(self, collection: str, doc_id: str, mutate: Mutation) -> None:
        """Read ``doc_id`` and merge ``mutate(current)`` into it atomically."""

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...


class InMemoryDocumentStore:
    """Document store whose transactions complete without yielding to the loop."""

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._clock = clock

    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        doc = self._collections.get(collection, {}).get(doc_id)
        return dict(doc) if doc is not None else None

    def _resolve(self, data: dict[str, Any]) -> dict[str, Any]:
        now = self._clock()
        return {k: (now if v is COMMIT_TIME else v) for k, v in data.items()}

    async def transact(self, collection: str, doc_id: str, mutate: Mutation) -> None:
        docs = self._collections.setdefault(collection, {})
        current = docs.get(doc_id)
        changes = mutate(dict(current) if current is not None else None)
        docs[doc_id] = {**(current or {}), **self._resolve(changes)}

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._collections.setdefault(collection, {})[doc_id] = self._resolve(data)

    async def delete(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)


# endregion


__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "RevisionedContent",
    "ContentStore",
    "InMemoryContentStore",
    "content_revision",
    "COMMIT_TIME",
    "Mutation",
    "DocumentStore",
    "InMemoryDocumentStore",
]
