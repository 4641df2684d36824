"""Signed session credentials wrapping a Slack user token."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import jwt

from .config import DEFAULT_TOKEN_TTL_SECONDS
from .errors import InvalidCredentialError
from .models import Identity, Session

ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("slack_user_token", "slack_user_id", "slack_team_id", "iat", "exp")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionTokenCodec:
    """Mints and verifies HS256 JWTs; stateless, expiry is purely time based."""

    def __init__(
        self,
        secret: str,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("signing secret must not be empty")
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def mint(self, identity: Identity, slack_user_token: str) -> str:
        issued_at = self._clock()
        payload = {
            "slack_user_token": slack_user_token,
            "slack_user_id": identity.user_id,
            "slack_team_id": identity.team_id,
            "user": identity.user_name,
            "team": identity.team_name,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.ttl_seconds),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, credential: str) -> Session:
        if not credential:
            raise InvalidCredentialError("missing credential")
        try:
            claims = jwt.decode(
                credential,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": list(_REQUIRED_CLAIMS)},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidCredentialError("credential expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidCredentialError(f"invalid credential: {type(exc).__name__}") from exc

        identity = Identity(
            team_id=str(claims["slack_team_id"]),
            team_name=str(claims.get("team") or ""),
            user_id=str(claims["slack_user_id"]),
            user_name=str(claims.get("user") or ""),
        )
        return Session(identity=identity, slack_user_token=str(claims["slack_user_token"]))


__all__ = ["SessionTokenCodec", "ALGORITHM"]
