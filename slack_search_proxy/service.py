"""Core orchestration logic for the Slack search proxy."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .auth import RequestGate
from .config import Settings
from .document_ledger import DocumentUsageLedger
from .errors import BadRequestError
from .file_ledger import FileUsageLedger
from .firestore_store import FirestoreDocumentStore
from .github_store import GitHubContentStore
from .identity import IdentityResolver
from .models import Session, TokenGrant
from .presence import PresenceRegistry
from .slack_client import SlackClient
from .storage import ContentStore, DocumentStore, KeyValueStore, RedisKeyValueStore
from .tasks import TaskSupervisor
from .tokens import SessionTokenCodec

logger = logging.getLogger(__name__)


class SlackSearchService:
    """High-level service behind the OAuth, search and admin endpoints."""

    def __init__(
        self,
        settings: Settings,
        slack_client: SlackClient,
        registry: PresenceRegistry,
        file_ledger: FileUsageLedger,
        document_ledger: DocumentUsageLedger,
        *,
        tasks: Optional[TaskSupervisor] = None,
        codec: Optional[SessionTokenCodec] = None,
    ) -> None:
        self.settings = settings
        self.slack = slack_client
        self.registry = registry
        self.file_ledger = file_ledger
        self.document_ledger = document_ledger
        self.tasks = tasks or TaskSupervisor()
        self.codec = codec or SessionTokenCodec(settings.jwt_secret, settings.token_ttl_seconds)
        self.resolver = IdentityResolver(settings, slack_client)
        self.gate = RequestGate(self.codec, registry, self.tasks)
        self._closeables: list[Any] = []

    # region OAuth
    def authorize_url(self, redirect_uri: Optional[str], state: Optional[str]) -> str:
        return self.resolver.authorize_url(redirect_uri, state)

    async def exchange_code(self, code: Optional[str], redirect_uri: Optional[str]) -> TokenGrant:
        if not code or not redirect_uri:
            raise BadRequestError("missing code or redirect_uri")
        identity, user_token = await self.resolver.resolve(code, redirect_uri)
        await self.registry.record_connect(identity)
        logger.info(
            "%s (%s) on %s (%s) connected",
            identity.user_name,
            identity.user_id,
            identity.team_name,
            identity.team_id,
        )
        return TokenGrant(
            access_token=self.codec.mint(identity, user_token),
            expires_in=self.codec.ttl_seconds,
        )

    async def authenticate(self, authorization: Optional[str]) -> Session:
        return await self.gate.authenticate(authorization)

    # endregion

    # region Slack
    async def search(self, session: Session, query: str, limit: int = 50) -> dict[str, Any]:
        identity = session.identity
        logger.info("search by %s (%s)", identity.user_name, identity.user_id)
        try:
            return await self.slack.search_messages(session.slack_user_token, query, limit)
        finally:
            self.tasks.spawn(
                self.file_ledger.record_question(identity),
                name=f"file-ledger:{identity.key}",
            )
            self.tasks.spawn(
                self.document_ledger.record_question(identity),
                name=f"document-ledger:{identity.key}",
            )

    async def thread(
        self, session: Session, channel: Optional[str], ts: Optional[str], limit: int = 100
    ) -> dict[str, Any]:
        if not channel or not ts:
            raise BadRequestError("missing channel or ts")
        identity = session.identity
        logger.info("thread by %s (%s)", identity.user_name, identity.user_id)
        return await self.slack.conversations_replies(session.slack_user_token, channel, ts, limit)

    # endregion

    # region Admin
    async def list_users(self) -> dict[str, Any]:
        records = await self.registry.list_all()
        return {
            "users": [record.to_dict() for record in records],
            "persistent": self.registry.persistent,
        }

    async def document_store_diagnostics(self) -> dict[str, Any]:
        settings = self.settings
        info: dict[str, Any] = {
            "firebaseConfigured": settings.firebase_configured,
            "firestoreInitialized": self.document_ledger.enabled,
            "projectId": settings.firebase_project_id or "not set",
            "clientEmail": settings.firebase_client_email or "not set",
            "privateKeySet": bool(settings.firebase_private_key),
        }
        info.update(await self.document_ledger.probe())
        return info

    # endregion

    def add_closeable(self, resource: Any) -> None:
        self._closeables.append(resource)

    async def close(self) -> None:
        await self.tasks.drain()
        await self.slack.close()
        for resource in self._closeables:
            await resource.close()


def _document_store_from_settings(settings: Settings) -> Optional[DocumentStore]:
    if not settings.firebase_configured:
        logger.info("Firebase not configured, skipping Firestore integration")
        return None
    try:
        store = FirestoreDocumentStore.from_service_account(
            settings.firebase_project_id or "",
            settings.firebase_client_email or "",
            settings.firebase_private_key or "",
        )
    except ValueError as exc:
        logger.error("Failed to initialize Firestore: %s", exc)
        return None
    logger.info("Firestore initialized for project %s", settings.firebase_project_id)
    return store


def build_service(
    settings: Settings,
    *,
    slack_client: Optional[SlackClient] = None,
    kv_store: Optional[KeyValueStore] = None,
    content_store: Optional[ContentStore] = None,
    document_store: Optional[DocumentStore] = None,
) -> SlackSearchService:
    """Wire the service from settings; explicit stores override configuration."""

    owned: list[Any] = []
    if kv_store is None and settings.redis_configured:
        kv_store = RedisKeyValueStore.from_url(settings.redis_url or "")
        owned.append(kv_store)
    if content_store is None and settings.github_configured:
        content_store = GitHubContentStore(
            settings.github_token or "",
            settings.github_owner or "",
            settings.github_repo or "",
            branch=settings.github_branch,
        )
        owned.append(content_store)
    elif content_store is None:
        logger.info("GitHub not configured, skipping CSV usage tracking")
    if document_store is None:
        document_store = _document_store_from_settings(settings)

    service = SlackSearchService(
        settings,
        slack_client or SlackClient(settings.slack_http_timeout),
        PresenceRegistry(kv_store, retention_seconds=settings.presence_retention_seconds),
        FileUsageLedger(
            content_store,
            settings.usage_csv_path,
            max_attempts=settings.usage_ledger_max_attempts,
        ),
        DocumentUsageLedger(document_store, settings.firestore_collection),
    )
    for resource in owned:
        service.add_closeable(resource)
    return service


__all__ = ["SlackSearchService", "build_service"]
