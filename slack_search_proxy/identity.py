"""Slack OAuth code exchange and identity lookup."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from .config import Settings
from .errors import IdentityResolutionError, UpstreamAuthError
from .models import Identity
from .slack_client import SlackClient

logger = logging.getLogger(__name__)

USER_SCOPES = "search:read,channels:history,groups:history,im:history,mpim:history"


class IdentityResolver:
    """Turns a one-time OAuth code into a Slack user token and its identity.

    Codes are single use, so a failed exchange is never retried here.
    """

    def __init__(self, settings: Settings, client: SlackClient) -> None:
        self.settings = settings
        self.client = client

    def authorize_url(self, redirect_uri: Optional[str] = None, state: Optional[str] = None) -> str:
        host = (
            f"{self.settings.slack_team_domain}.slack.com"
            if self.settings.slack_team_domain
            else "slack.com"
        )
        params = {"client_id": self.settings.slack_client_id, "user_scope": USER_SCOPES}
        if redirect_uri:
            params["redirect_uri"] = redirect_uri
        if state:
            params["state"] = state
        return f"https://{host}/oauth/v2/authorize?{urlencode(params)}"

    async def resolve(self, code: str, redirect_uri: str) -> tuple[Identity, str]:
        access = await self.client.oauth_access(
            code,
            redirect_uri,
            self.settings.slack_client_id,
            self.settings.slack_client_secret,
        )
        user_token = (access.get("authed_user") or {}).get("access_token")
        if access.get("ok") is not True or not user_token:
            logger.warning("Slack OAuth exchange failed: %s", access.get("error", "no user token"))
            raise UpstreamAuthError("slack_oauth_failed", details=access)

        who = await self.client.auth_test(user_token)
        if not who.get("ok"):
            logger.warning("Slack auth.test rejected new token: %s", who.get("error"))
            raise IdentityResolutionError("auth_test_failed", details=who)

        identity = Identity(
            team_id=who.get("team_id", ""),
            team_name=who.get("team", ""),
            user_id=who.get("user_id", ""),
            user_name=who.get("user", ""),
        )
        return identity, user_token


__all__ = ["IdentityResolver", "USER_SCOPES"]
