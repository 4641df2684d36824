"""Bearer credential gate applied to every Slack-facing request."""

from __future__ import annotations

from typing import Optional

from .errors import InvalidCredentialError
from .models import Session
from .presence import PresenceRegistry
from .tasks import TaskSupervisor
from .tokens import SessionTokenCodec


def bearer_token(authorization: Optional[str]) -> str:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer ") :].strip()
    return ""


class RequestGate:
    def __init__(
        self, codec: SessionTokenCodec, registry: PresenceRegistry, tasks: TaskSupervisor
    ) -> None:
        self.codec = codec
        self.registry = registry
        self.tasks = tasks

    async def authenticate(self, authorization: Optional[str]) -> Session:
        """Verify the ``Authorization`` header and refresh the caller's presence.

        The presence refresh runs in the background; the request proceeds as
        soon as the credential checks out.
        """

        credential = bearer_token(authorization)
        if not credential:
            raise InvalidCredentialError("missing bearer credential")
        session = self.codec.verify(credential)
        self.tasks.spawn(
            self.registry.touch(session.identity),
            name=f"presence-touch:{session.identity.key}",
        )
        return session


__all__ = ["RequestGate", "bearer_token"]
