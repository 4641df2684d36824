"""Firestore implementation of ``DocumentStore``."""

from __future__ import annotations

from typing import Any

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import firestore
from google.oauth2 import service_account

from .errors import PersistenceError
from .storage import COMMIT_TIME, Mutation

# async_transactional raises a bare ValueError once its commit retries run out.
_GOOGLE_ERRORS = (GoogleAPIError, GoogleAuthError, ValueError)


def _to_firestore(data: dict[str, Any]) -> dict[str, Any]:
    return {k: (firestore.SERVER_TIMESTAMP if v is COMMIT_TIME else v) for k, v in data.items()}


class FirestoreDocumentStore:
    def __init__(self, client: firestore.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_service_account(
        cls, project_id: str, client_email: str, private_key: str
    ) -> "FirestoreDocumentStore":
        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "project_id": project_id,
                "client_email": client_email,
                "private_key": private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        return cls(firestore.AsyncClient(project=project_id, credentials=credentials))

    async def transact(self, collection: str, doc_id: str, mutate: Mutation) -> None:
        ref = self._client.collection(collection).document(doc_id)

        @firestore.async_transactional
        async def apply(transaction: firestore.AsyncTransaction) -> None:
            snapshot = await ref.get(transaction=transaction)
            current = snapshot.to_dict() if snapshot.exists else None
            transaction.set(ref, _to_firestore(mutate(current)), merge=True)

        try:
            await apply(self._client.transaction())
        except _GOOGLE_ERRORS as exc:
            raise PersistenceError(f"Firestore transaction on {collection}/{doc_id} failed: {exc}") from exc

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        try:
            await self._client.collection(collection).document(doc_id).set(_to_firestore(data))
        except _GOOGLE_ERRORS as exc:
            raise PersistenceError(f"Firestore write of {collection}/{doc_id} failed: {exc}") from exc

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self._client.collection(collection).document(doc_id).delete()
        except _GOOGLE_ERRORS as exc:
            raise PersistenceError(f"Firestore delete of {collection}/{doc_id} failed: {exc}") from exc


__all__ = ["FirestoreDocumentStore"]
