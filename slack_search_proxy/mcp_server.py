"""MCP server exposing Slack search tools to local assistants.

The caller's bearer credential (as issued by ``/oauth/token``) is read from
``SLACK_SEARCH_CREDENTIAL``; each tool call passes through the same gate and
usage accounting as the HTTP endpoints.
"""

from __future__ import annotations

import os
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .config import load_settings
from .service import SlackSearchService, build_service

mcp = FastMCP("slack-search-proxy")

_service: Optional[SlackSearchService] = None


def get_service() -> SlackSearchService:
    global _service
    if _service is None:
        _service = build_service(load_settings(os.getenv("SLACK_SEARCH_PROXY_ENV")))
    return _service


def _authorization() -> str:
    return f"Bearer {os.getenv('SLACK_SEARCH_CREDENTIAL', '')}"


@mcp.tool()
async def search_messages(query: str, limit: int = 50) -> dict:
    """Search Slack messages visible to the authorized user."""

    service = get_service()
    session = await service.authenticate(_authorization())
    return await service.search(session, query, limit)


@mcp.tool()
async def get_thread(channel: str, ts: str, limit: int = 100) -> dict:
    """Return the replies of the thread rooted at ``ts`` in ``channel``."""

    service = get_service()
    session = await service.authenticate(_authorization())
    return await service.thread(session, channel, ts, limit)


if __name__ == "__main__":  # pragma: no cover
    mcp.run()


__all__ = ["mcp", "get_service", "search_messages", "get_thread"]
