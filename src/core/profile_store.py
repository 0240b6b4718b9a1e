"""
Profile document store adapter (Cloud Firestore).

Profiles live in one collection per directory role, keyed by user id.
"""
import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol

from google.cloud import firestore

logger = logging.getLogger(__name__)

# Firestore rejects batched writes with more operations than this
MAX_BATCH_OPERATIONS = 500


class ProfileStore(Protocol):
    """Document operations on profile collections."""

    async def get(self, collection: str, document_id: str) -> dict[str, Any] | None:
        """Return the document, or None when it does not exist."""
        ...

    async def set(self, collection: str, document_id: str, document: dict[str, Any]) -> None:
        """Create or overwrite a document."""
        ...

    async def batch_delete(self, collection: str, document_ids: Sequence[str]) -> None:
        """Delete documents (missing ones are ignored)."""
        ...


class FirestoreProfileStore:
    """ProfileStore backed by the asynchronous Firestore client."""

    def __init__(
        self,
        client: firestore.AsyncClient,
        batch_size: int = MAX_BATCH_OPERATIONS,
    ) -> None:
        if not 1 <= batch_size <= MAX_BATCH_OPERATIONS:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_OPERATIONS}")
        self._client = client
        self._batch_size = batch_size

    async def get(self, collection: str, document_id: str) -> dict[str, Any] | None:
        """Read one profile document."""
        snapshot = await self._client.collection(collection).document(document_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    async def set(self, collection: str, document_id: str, document: dict[str, Any]) -> None:
        """Write one profile document."""
        await self._client.collection(collection).document(document_id).set(document)

    async def batch_delete(self, collection: str, document_ids: Sequence[str]) -> None:
        """Delete documents in capped batches, committing all batches concurrently."""
        ids = list(document_ids)
        if not ids:
            return

        commits = []
        for start in range(0, len(ids), self._batch_size):
            batch = self._client.batch()
            for document_id in ids[start:start + self._batch_size]:
                batch.delete(self._client.collection(collection).document(document_id))
            commits.append(batch.commit())

        await asyncio.gather(*commits)
        logger.info(
            "profiles_deleted collection=%s count=%d batches=%d",
            collection, len(ids), len(commits),
        )