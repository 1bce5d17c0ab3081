from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List

from logoot.core.config import get_settings
from logoot.services.crdt import TextReplica
from logoot.services.snapshots import snapshots


logger = logging.getLogger(__name__)


@dataclass
class DocState:
    replica: TextReplica
    version: int = 0  # monotonically increasing with each op batch applied
    ops_applied: int = 0
    last_activity: datetime | None = None

    def touch(self) -> int:
        self.version += 1
        self.ops_applied += 1
        self.last_activity = datetime.now(timezone.utc)
        return self.version


class InMemoryDocStore:
    """In-memory replicas of the active documents, one per document id.

    A replica's sequence is scanned then mutated on every insert, so every
    read and write of a document goes through the store lock.
    """

    def __init__(self) -> None:
        self._docs: Dict[uuid.UUID, DocState] = {}
        self._lock = asyncio.Lock()

    def _get_or_create_locked(self, doc_id: uuid.UUID) -> DocState:
        if doc_id not in self._docs:
            site_id = get_settings().site_id
            self._docs[doc_id] = DocState(TextReplica(site_id=site_id))
            logger.info("created replica for doc %s as site %s", doc_id, site_id)
        return self._docs[doc_id]

    async def get_or_create(self, doc_id: uuid.UUID) -> DocState:
        async with self._lock:
            return self._get_or_create_locked(doc_id)

    async def apply_ops(self, doc_id: uuid.UUID, op_batch: dict) -> tuple[int, str]:
        async with self._lock:
            doc = self._get_or_create_locked(doc_id)
            doc.replica.apply(op_batch)
            version = doc.touch()
            text, atoms = doc.replica.to_string(), doc.replica.encoded()
        await self._maybe_snapshot(doc_id, version, text, atoms)
        return version, text

    async def local_insert(self, doc_id: uuid.UUID, index: int, text: str) -> tuple[dict, int, str]:
        async with self._lock:
            doc = self._get_or_create_locked(doc_id)
            op = doc.replica.local_insert(index, text)
            version = doc.touch()
            new_text, atoms = doc.replica.to_string(), doc.replica.encoded()
        await self._maybe_snapshot(doc_id, version, new_text, atoms)
        return op, version, new_text

    async def local_delete(self, doc_id: uuid.UUID, index: int, length: int) -> tuple[dict, int, str]:
        async with self._lock:
            doc = self._get_or_create_locked(doc_id)
            op = doc.replica.local_delete(index, length)
            version = doc.touch()
            new_text, atoms = doc.replica.to_string(), doc.replica.encoded()
        await self._maybe_snapshot(doc_id, version, new_text, atoms)
        return op, version, new_text

    async def snapshot_text(self, doc_id: uuid.UUID) -> tuple[str, int]:
        async with self._lock:
            doc = self._get_or_create_locked(doc_id)
            return doc.replica.to_string(), doc.version

    async def snapshot_atoms(self, doc_id: uuid.UUID) -> tuple[List[Any], int]:
        async with self._lock:
            doc = self._get_or_create_locked(doc_id)
            return doc.replica.encoded(), doc.version

    async def stats(self, doc_id: uuid.UUID) -> dict:
        async with self._lock:
            doc = self._get_or_create_locked(doc_id)
            return {
                "version": doc.version,
                "ops_applied": doc.ops_applied,
                "length": len(doc.replica),
                "clock": doc.replica.clock,
                "last_activity": doc.last_activity,
            }

    async def reset(self) -> None:
        async with self._lock:
            self._docs = {}

    async def list_doc_ids(self) -> list[uuid.UUID]:
        async with self._lock:
            return list(self._docs.keys())

    async def _maybe_snapshot(self, doc_id: uuid.UUID, version: int, text: str, atoms: List[Any]) -> None:
        settings = get_settings()
        if settings.snapshot_interval <= 0:
            return
        if version % settings.snapshot_interval != 0:
            return
        await snapshots.record(doc_id, version, text, atoms)
        logger.debug("snapshot of doc %s at version %d", doc_id, version)


store = InMemoryDocStore()
