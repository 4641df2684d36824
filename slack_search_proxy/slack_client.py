"""HTTP client for the Slack Web API endpoints the proxy relies on."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from .errors import SlackApiError

SLACK_API_BASE = "https://slack.com/api"


class SlackClient:
    """Async wrapper around Slack Web API calls made with per-user tokens.

    One ``httpx.AsyncClient`` is shared by every request; the user token is
    passed per call because each bearer credential carries its own.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        *,
        base_url: str = SLACK_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(
        self, method: str, data: dict[str, str], token: Optional[str] = None
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            response = await self._client.post(method, data=data, headers=headers)
            return response.json()
        except httpx.HTTPError as exc:
            raise SlackApiError(method, type(exc).__name__) from exc
        except ValueError as exc:
            raise SlackApiError(method, "invalid_json") from exc

    async def oauth_access(
        self, code: str, redirect_uri: str, client_id: str, client_secret: str
    ) -> dict[str, Any]:
        return await self._post(
            "oauth.v2.access",
            {
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
            },
        )

    async def auth_test(self, token: str) -> dict[str, Any]:
        return await self._post("auth.test", {}, token=token)

    async def search_messages(self, token: str, query: str, count: int = 50) -> dict[str, Any]:
        """Run ``search.messages``; the payload is returned untouched, errors included."""

        return await self._post(
            "search.messages",
            {"query": query, "count": str(count), "highlight": "true"},
            token=token,
        )

    async def conversations_replies(
        self, token: str, channel: str, ts: str, limit: int = 100
    ) -> dict[str, Any]:
        return await self._post(
            "conversations.replies",
            {"channel": channel, "ts": ts, "limit": str(limit)},
            token=token,
        )


__all__ = ["SlackClient", "SlackApiError", "SLACK_API_BASE"]
