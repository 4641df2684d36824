"""Exception taxonomy shared by the proxy components."""

from __future__ import annotations

from typing import Any, Optional


class ProxyError(Exception):
    """Base class for errors raised by the Slack search proxy."""


class BadRequestError(ProxyError):
    """A required request parameter is missing or invalid."""


class InvalidCredentialError(ProxyError):
    """The bearer credential is missing, malformed, forged or expired."""

    def __init__(self, reason: str = "unauthorized") -> None:
        super().__init__(reason)
        self.reason = reason


class OAuthExchangeError(ProxyError):
    """The Slack OAuth exchange failed; carries Slack's raw payload."""

    def __init__(self, error: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(error)
        self.error = error
        self.details = details or {}


class UpstreamAuthError(OAuthExchangeError):
    """Slack rejected the authorization code or returned no user token."""


class IdentityResolutionError(OAuthExchangeError):
    """Slack did not confirm the freshly issued user token."""


class SlackApiError(ProxyError):
    """Raised when Slack cannot be reached or answers with a non-JSON body."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"Slack API error for {method}: {error}")
        self.method = method
        self.error = error


class PersistenceError(ProxyError):
    """A ledger or registry backend failed."""


class RevisionConflictError(PersistenceError):
    """The content store rejected a write because its revision tag is stale."""


__all__ = [
    "ProxyError",
    "BadRequestError",
    "InvalidCredentialError",
    "OAuthExchangeError",
    "UpstreamAuthError",
    "IdentityResolutionError",
    "SlackApiError",
    "PersistenceError",
    "RevisionConflictError",
]
