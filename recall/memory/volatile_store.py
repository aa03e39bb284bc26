"""
Volatile (in-process) Memory Store Implementation.

Everything lives in Python dictionaries for the lifetime of the process:
- No setup, no files, no server
- Exact linear-scan search (fine for small collections)
- Safe to share between asyncio tasks and threads
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence

import numpy as np

from ..errors import NotFoundError, ValidationError
from .base import MemoryRecord, MemoryStore, SearchResult
from .similarity import cosine_similarities, rank_results, validate_embedding

logger = logging.getLogger("recall.memory.volatile")


class _Collection:
    """Records of one collection plus the lock that serializes its writes."""

    def __init__(self, name: str, dimension: Optional[int] = None):
        self.name = name
        self.dimension = dimension
        self.records: dict[str, MemoryRecord] = {}
        self.lock = threading.Lock()
        # Set once the collection has been dropped from the store
        self.deleted = False


class VolatileMemoryStore(MemoryStore):
    """
    In-memory implementation of the memory store.

    Mutations on one collection are serialized by that collection's lock;
    different collections never contend with each other. None of the
    critical sections await, so the locks are held only briefly.
    """

    def __init__(self):
        self._collections: dict[str, _Collection] = {}
        self._lock = threading.Lock()
        logger.info("VolatileMemoryStore created")

    def _lookup(self, name: str) -> Optional[_Collection]:
        with self._lock:
            return self._collections.get(name)

    def _require(self, name: str) -> _Collection:
        coll = self._lookup(name)
        if coll is None:
            raise NotFoundError(name)
        return coll

    def _get_or_create(self, name: str, dimension: Optional[int] = None) -> _Collection:
        with self._lock:
            coll = self._collections.get(name)
            if coll is None:
                coll = _Collection(name, dimension)
                self._collections[name] = coll
                logger.info(f"Created collection: {name}")
            return coll

    async def create_collection(self, name: str, dimension: Optional[int] = None) -> None:
        """Create a collection if it does not already exist."""
        self._get_or_create(name, dimension)

    async def collection_exists(self, name: str) -> bool:
        return self._lookup(name) is not None

    async def delete_collection(self, name: str) -> None:
        """Delete a collection and all of its records."""
        with self._lock:
            coll = self._collections.pop(name, None)
        if coll is None:
            return

        # Wait out any in-flight write, then fence off late writers
        with coll.lock:
            coll.deleted = True
            coll.records.clear()
        logger.info(f"Deleted collection: {name}")

    async def list_collections(self) -> set[str]:
        with self._lock:
            return set(self._collections)

    async def upsert(self, collection: str, record: MemoryRecord) -> str:
        """Insert or replace a record."""
        return self._write(collection, [record])[0]

    async def upsert_batch(self, collection: str, records: Sequence[MemoryRecord]) -> list[str]:
        """Insert or replace several records; nothing is written if any is invalid."""
        if not records:
            return []
        return self._write(collection, records)

    def _write(self, name: str, records: Sequence[MemoryRecord]) -> list[str]:
        # Reject malformed or mutually inconsistent records before the
        # collection is implicitly created
        batch_dimension = None
        for record in records:
            batch_dimension = validate_embedding(record.embedding, batch_dimension).size

        while True:
            coll = self._get_or_create(name)
            with coll.lock:
                if coll.deleted:
                    # Lost a race with delete_collection; recreate and retry
                    continue

                if coll.dimension is not None and coll.dimension != batch_dimension:
                    raise ValidationError(
                        f"Embedding dimension {batch_dimension} does not match "
                        f"collection dimension {coll.dimension}"
                    )

                now = datetime.now()
                stamped = [replace(record, timestamp=now) for record in records]

                coll.dimension = batch_dimension
                for record in stamped:
                    coll.records[record.id] = record
                    logger.debug(f"Upserted {record.id} into {name}")

                return [record.id for record in stamped]

    async def get(self, collection: str, id: str) -> Optional[MemoryRecord]:
        coll = self._require(collection)
        with coll.lock:
            return coll.records.get(id)

    async def remove(self, collection: str, id: str) -> None:
        coll = self._lookup(collection)
        if coll is None:
            return
        with coll.lock:
            if coll.records.pop(id, None) is not None:
                logger.debug(f"Removed {id} from {collection}")

    async def search(
        self,
        collection: str,
        query_embedding: Sequence[float],
        limit: int,
        min_relevance_score: float,
    ) -> list[SearchResult]:
        """Exact cosine search by linear scan."""
        coll = self._require(collection)

        # Snapshot under the lock, score outside it
        with coll.lock:
            records = list(coll.records.values())
            dimension = coll.dimension

        query = validate_embedding(query_embedding, dimension)
        if limit <= 0 or not records:
            return []

        matrix = np.array([record.embedding for record in records], dtype=np.float64)
        scores = cosine_similarities(matrix, query)

        return rank_results(zip(records, scores.tolist()), limit, min_relevance_score)

    async def count(self, collection: str) -> int:
        coll = self._require(collection)
        with coll.lock:
            return len(coll.records)

    async def close(self) -> None:
        """Drop every collection."""
        for name in await self.list_collections():
            await self.delete_collection(name)
        logger.info("VolatileMemoryStore cleared")
