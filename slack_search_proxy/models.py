"""Dataclasses representing the proxy's domain models."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Identity:
    team_id: str
    team_name: str
    user_id: str
    user_name: str

    @property
    def key(self) -> str:
        return f"{self.team_id}:{self.user_id}"


@dataclass(frozen=True, slots=True)
class Session:
    """Result of verifying a bearer credential."""

    identity: Identity
    slack_user_token: str = field(repr=False)


@dataclass(slots=True)
class PresenceRecord:
    team_id: str
    user_id: str
    team_name: str
    user_name: str
    connected_at: str | None = None
    last_seen: str | None = None

    @classmethod
    def from_hash(cls, data: dict[str, str]) -> "PresenceRecord":
        return cls(
            team_id=data.get("team_id", ""),
            user_id=data.get("user_id", ""),
            team_name=data.get("team", ""),
            user_name=data.get("user", ""),
            connected_at=data.get("connected_at"),
            last_seen=data.get("last_seen"),
        )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "team_id": self.team_id,
            "team": self.team_name,
            "user_id": self.user_id,
            "user": self.user_name,
            "connected_at": self.connected_at,
            "last_seen": self.last_seen,
        }


@dataclass(slots=True)
class LedgerRow:
    user_name: str
    team_name: str
    user_id: str
    team_id: str
    questions: int = 0

    @property
    def key(self) -> str:
        return f"{self.team_id}:{self.user_id}"


@dataclass(slots=True)
class TokenGrant:
    access_token: str = field(repr=False)
    expires_in: int
    token_type: str = "bearer"

    def to_dict(self) -> dict[str, object]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


__all__ = ["Identity", "Session", "PresenceRecord", "LedgerRow", "TokenGrant"]
