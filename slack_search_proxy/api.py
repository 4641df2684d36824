"""FastAPI application exposing the OAuth and Slack search endpoints."""

from __future__ import annotations

import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from .config import Settings, load_settings
from .errors import (
    BadRequestError,
    InvalidCredentialError,
    OAuthExchangeError,
    PersistenceError,
    SlackApiError,
)
from .models import Session
from .service import SlackSearchService, build_service

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None, service: Optional[SlackSearchService] = None
) -> FastAPI:
    if service is None:
        service = build_service(settings or load_settings())
    settings = service.settings

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:  # pragma: no cover - io bound
        yield
        await service.close()

    app = FastAPI(title="Slack Search Proxy", version="1.0.0", lifespan=lifespan)
    app.state.service = service

    @app.exception_handler(BadRequestError)
    async def bad_request_handler(_: Request, exc: BadRequestError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "invalid request parameters", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(OAuthExchangeError)
    async def oauth_error_handler(_: Request, exc: OAuthExchangeError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": exc.error, "details": exc.details},
        )

    @app.exception_handler(InvalidCredentialError)
    async def unauthorized_handler(_: Request, exc: InvalidCredentialError) -> JSONResponse:
        logger.info("Rejected request: %s", exc.reason)
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "unauthorized"})

    @app.exception_handler(SlackApiError)
    async def slack_error_handler(_: Request, exc: SlackApiError) -> JSONResponse:
        logger.error("%s", exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "slack_request_failed", "method": exc.method},
        )

    @app.exception_handler(PersistenceError)
    async def storage_error_handler(_: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Storage unavailable: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"error": "storage_unavailable"}
        )

    def get_service() -> SlackSearchService:
        return service

    async def require_session(
        authorization: Optional[str] = Header(None),
        svc: SlackSearchService = Depends(get_service),
    ) -> Session:
        return await svc.authenticate(authorization)

    async def verify_admin_key(x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key")) -> None:
        if not settings.admin_key or not secrets.compare_digest(
            (x_admin_key or "").encode(), settings.admin_key.encode()
        ):
            raise InvalidCredentialError("invalid admin key")

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "OK"

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        """Lightweight readiness probe for platform monitors."""

        return {"status": "ok"}

    @app.get("/oauth/authorize")
    async def oauth_authorize(
        redirect_uri: Optional[str] = None,
        state: Optional[str] = None,
        svc: SlackSearchService = Depends(get_service),
    ) -> RedirectResponse:
        return RedirectResponse(svc.authorize_url(redirect_uri, state), status_code=status.HTTP_302_FOUND)

    @app.post("/oauth/token")
    async def oauth_token(
        request: Request, svc: SlackSearchService = Depends(get_service)
    ) -> dict[str, object]:
        body: Any
        if request.headers.get("content-type", "").startswith("application/json"):
            try:
                body = await request.json()
            except ValueError as exc:
                raise BadRequestError("malformed JSON body") from exc
        else:
            body = await request.form()
        if not hasattr(body, "get"):
            raise BadRequestError("missing code or redirect_uri")
        grant = await svc.exchange_code(body.get("code"), body.get("redirect_uri"))
        return grant.to_dict()

    @app.get("/slack/search")
    async def slack_search(
        q: str = "",
        limit: int = 50,
        session: Session = Depends(require_session),
        svc: SlackSearchService = Depends(get_service),
    ) -> dict[str, Any]:
        return await svc.search(session, q, limit)

    @app.get("/slack/thread")
    async def slack_thread(
        channel: Optional[str] = None,
        ts: Optional[str] = None,
        limit: int = 100,
        session: Session = Depends(require_session),
        svc: SlackSearchService = Depends(get_service),
    ) -> dict[str, Any]:
        return await svc.thread(session, channel, ts, limit)

    @app.get("/admin/users")
    async def admin_users(
        _: None = Depends(verify_admin_key),
        svc: SlackSearchService = Depends(get_service),
    ) -> dict[str, Any]:
        return await svc.list_users()

    @app.get("/debug/firestore")
    async def debug_firestore(
        _: None = Depends(verify_admin_key),
        svc: SlackSearchService = Depends(get_service),
    ) -> dict[str, Any]:
        return await svc.document_store_diagnostics()

    return app


__all__ = ["create_app"]
