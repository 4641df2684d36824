"""Configuration helpers for the Slack search proxy."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_TOKEN_TTL_SECONDS = 60 * 60 * 24 * 7


@dataclass(slots=True)
class Settings:
    """Runtime configuration values loaded from environment variables."""

    slack_client_id: str
    slack_client_secret: str
    jwt_secret: str
    admin_key: str = ""
    slack_team_domain: Optional[str] = None
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    redis_url: Optional[str] = None
    presence_retention_days: int = 90
    github_token: Optional[str] = None
    github_owner: Optional[str] = None
    github_repo: Optional[str] = None
    github_branch: Optional[str] = None
    usage_csv_path: str = "usage_stats.csv"
    usage_ledger_max_attempts: int = 1
    firebase_project_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firestore_collection: str = "userStats"
    slack_http_timeout: float = 10.0

    @property
    def redis_configured(self) -> bool:
        return bool(self.redis_url)

    @property
    def github_configured(self) -> bool:
        return bool(self.github_token and self.github_owner and self.github_repo)

    @property
    def firebase_configured(self) -> bool:
        return bool(
            self.firebase_project_id and self.firebase_private_key and self.firebase_client_email
        )

    @property
    def presence_retention_seconds(self) -> Optional[int]:
        if self.presence_retention_days <= 0:
            return None
        return self.presence_retention_days * 24 * 60 * 60


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from the environment, optionally from a specific file."""

    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    client_id = os.getenv("SLACK_CLIENT_ID")
    client_secret = os.getenv("SLACK_CLIENT_SECRET")
    jwt_secret = os.getenv("JWT_SECRET")

    if not client_id:
        raise RuntimeError("SLACK_CLIENT_ID must be configured")
    if not client_secret:
        raise RuntimeError("SLACK_CLIENT_SECRET must be configured")
    if not jwt_secret:
        raise RuntimeError("JWT_SECRET must be configured")

    private_key = os.getenv("FIREBASE_PRIVATE_KEY")
    if private_key:
        # PEM arrives on one line with literal "\n" escapes.
        private_key = private_key.replace("\\n", "\n")

    return Settings(
        slack_client_id=client_id,
        slack_client_secret=client_secret,
        jwt_secret=jwt_secret,
        admin_key=os.getenv("ADMIN_KEY", ""),
        slack_team_domain=os.getenv("SLACK_TEAM_DOMAIN") or None,
        token_ttl_seconds=_int_env("TOKEN_TTL_SECONDS", DEFAULT_TOKEN_TTL_SECONDS),
        redis_url=os.getenv("REDIS_URL") or None,
        presence_retention_days=_int_env("PRESENCE_RETENTION_DAYS", 90),
        github_token=os.getenv("GITHUB_TOKEN") or None,
        github_owner=os.getenv("GITHUB_OWNER") or None,
        github_repo=os.getenv("GITHUB_REPO") or None,
        github_branch=os.getenv("GITHUB_BRANCH") or None,
        usage_csv_path=os.getenv("USAGE_CSV_PATH", "usage_stats.csv"),
        usage_ledger_max_attempts=max(1, _int_env("USAGE_LEDGER_MAX_ATTEMPTS", 1)),
        firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
        firebase_private_key=private_key or None,
        firebase_client_email=os.getenv("FIREBASE_CLIENT_EMAIL") or None,
        firestore_collection=os.getenv("FIRESTORE_COLLECTION", "userStats"),
        slack_http_timeout=float(os.getenv("SLACK_HTTP_TIMEOUT", "10")),
    )


__all__ = ["Settings", "load_settings", "DEFAULT_TOKEN_TTL_SECONDS"]
