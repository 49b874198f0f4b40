"""Idempotent persistence of transcriptions, fronted by expiring caches.

upsert() checks existence against the store itself (never the cache) and
then updates or inserts, so any number of writes for one contact id
converge to a single row. Read paths consult the caches first.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from call_processor.storage.cache import RecordCaches
from call_processor.storage.models import PersistedTranscription
from call_processor.utils.errors import PersistenceError

logger = logging.getLogger(__name__)

EXISTENCE_CHUNK_SIZE = 100


class TranscriptionStore(Protocol):
    """Backing store operations the repository relies on."""

    async def exists(self, contact_id: str) -> bool: ...

    async def fetch(self, contact_id: str) -> dict[str, Any] | None: ...

    async def insert(self, row: dict[str, Any]) -> None: ...

    async def update(self, contact_id: str, row: dict[str, Any]) -> None: ...

    async def select_existing(self, contact_ids: list[str]) -> list[str]: ...


class TranscriptionRepository:
    """Persistence layer for completed transcriptions.

    Args:
        store: Backing store client.
        caches: Process-wide existence and payload caches.
        chunk_size: Identifiers per batch existence query.
    """

    def __init__(
        self,
        store: TranscriptionStore,
        caches: RecordCaches | None = None,
        chunk_size: int = EXISTENCE_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.store = store
        self.caches = caches or RecordCaches()
        self.chunk_size = chunk_size

    async def upsert(self, transcription: PersistedTranscription) -> PersistedTranscription:
        """Insert or update the row for transcription.contact_id.

        Raises:
            PersistenceError: If the existence check is ambiguous or the
                write fails. Neither branch is attempted on an ambiguous
                existence check.
        """
        contact_id = transcription.contact_id
        row = transcription.to_row()

        try:
            found = await self.store.exists(contact_id)
            if found:
                await self.store.update(contact_id, row)
            else:
                await self.store.insert(row)
        except PersistenceError as exc:
            exc.contact_id = exc.contact_id or contact_id
            raise

        logger.info(
            "%s transcription row",
            "Updated" if found else "Inserted",
            extra={"contact_id": contact_id, "stage": "persist"},
        )
        self.caches.existence.put(contact_id, True)
        self.caches.payloads.put(contact_id, row)
        return transcription

    async def exists(self, contact_id: str, refresh: bool = False) -> bool:
        """Return whether contact_id is persisted.

        The existence cache is consulted first unless refresh is set, in
        which case the store is asked and the cache updated.
        """
        if not refresh:
            entry = self.caches.existence.get(contact_id)
            if entry is not None:
                return bool(entry.value)
        found = await self.store.exists(contact_id)
        self.caches.existence.put(contact_id, found)
        return found

    async def existing_ids(self, contact_ids: list[str]) -> set[str]:
        """Return which contact_ids are persisted.

        Identifiers are queried in chunks of chunk_size, one query per
        chunk. A chunk whose query fails is logged and contributes nothing;
        the other chunks' results are still returned.
        """
        unique_ids = list(dict.fromkeys(contact_ids))
        found: set[str] = set()

        for offset in range(0, len(unique_ids), self.chunk_size):
            chunk = unique_ids[offset : offset + self.chunk_size]
            try:
                present = await self.store.select_existing(chunk)
            except PersistenceError as exc:
                logger.warning(
                    "Existence query failed for chunk %d-%d: %s",
                    offset,
                    offset + len(chunk) - 1,
                    exc,
                    extra={"stage": "existence_check", "error": str(exc)},
                )
                continue

            present_set = set(present)
            found |= present_set
            for contact_id in chunk:
                self.caches.existence.put(contact_id, contact_id in present_set)

        return found

    async def get_transcription(self, contact_id: str) -> dict[str, Any] | None:
        """Return the stored row for contact_id, consulting the payload cache."""
        entry = self.caches.payloads.get(contact_id)
        if entry is not None:
            return entry.value
        row = await self.store.fetch(contact_id)
        if row is not None:
            self.caches.payloads.put(contact_id, row)
            self.caches.existence.put(contact_id, True)
        return row
