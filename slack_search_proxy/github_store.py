"""GitHub contents API used as a revisioned text store."""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional

import httpx

from .errors import PersistenceError, RevisionConflictError
from .storage import RevisionedContent

GITHUB_API_BASE = "https://api.github.com"
# JSON, base64 and UTF-8 decode errors are all ValueError subclasses.
_MALFORMED = (ValueError, KeyError, TypeError, AttributeError)

logger = logging.getLogger(__name__)


class GitHubContentStore:
    """Reads and writes single files of one repository.

    The blob ``sha`` GitHub returns on read is the revision tag; a ``PUT`` with
    a stale ``sha`` is answered with 409 (or 422 when the sha was omitted for
    an existing file) and surfaces as ``RevisionConflictError``.
    """

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        branch: Optional[str] = None,
        timeout: float = 10.0,
        base_url: str = GITHUB_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    def _contents_path(self, path: str) -> str:
        return f"/repos/{self.owner}/{self.repo}/contents/{path}"

    async def read(self, path: str) -> Optional[RevisionedContent]:
        params = {"ref": self.branch} if self.branch else None
        try:
            response = await self._client.get(self._contents_path(path), params=params)
        except httpx.HTTPError as exc:
            raise PersistenceError(f"GitHub read of {path} failed: {type(exc).__name__}") from exc

        if response.status_code == 404:
            return None
        if response.is_error:
            raise PersistenceError(f"GitHub read of {path} failed: HTTP {response.status_code}")

        try:
            data = response.json()
            content = base64.b64decode(data.get("content", "")).decode("utf-8")
            return RevisionedContent(content=content, revision=data["sha"])
        except _MALFORMED as exc:
            raise PersistenceError(f"GitHub read of {path} returned a malformed body: {exc!r}") from exc

    async def write(self, path: str, content: str, revision: Optional[str], message: str) -> str:
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if revision:
            body["sha"] = revision
        if self.branch:
            body["branch"] = self.branch

        try:
            response = await self._client.put(self._contents_path(path), json=body)
        except httpx.HTTPError as exc:
            raise PersistenceError(f"GitHub write of {path} failed: {type(exc).__name__}") from exc

        if response.status_code in (409, 422):
            raise RevisionConflictError(
                f"GitHub rejected write of {path} at revision {revision}: HTTP {response.status_code}"
            )
        if response.is_error:
            raise PersistenceError(f"GitHub write of {path} failed: HTTP {response.status_code}")

        try:
            new_revision = response.json()["content"]["sha"]
        except _MALFORMED as exc:
            raise PersistenceError(f"GitHub write of {path} returned a malformed body: {exc!r}") from exc
        logger.debug("Committed %s at %s", path, new_revision)
        return new_revision


__all__ = ["GitHubContentStore", "GITHUB_API_BASE"]
