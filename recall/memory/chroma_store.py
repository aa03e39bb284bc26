"""
ChromaDB Memory Store Implementation.

ChromaDB is perfect for local/development use:
- No server required
- Stores everything in a local directory
- Built-in persistence
- HNSW index keeps search fast as collections grow
"""

import asyncio
import hashlib
import logging
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from ..errors import NotFoundError, ValidationError
from .base import MemoryRecord, MemoryStore, SearchResult
from .similarity import cosine_similarity, rank_results, validate_embedding

logger = logging.getLogger("recall.memory.chroma")


class ChromaMemoryStore(MemoryStore):
    """
    ChromaDB implementation of the memory store.

    Each store collection maps to one Chroma collection using cosine
    distance. Chroma only accepts short ASCII names, so the Chroma name is
    derived from a hash and the store name is kept in collection metadata.
    Chroma narrows the candidates; relevance is then recomputed exactly
    so ranking matches the other backends.
    """

    # Fetch extra candidates so threshold filtering still fills `limit`
    CANDIDATE_MULTIPLIER = 2

    def __init__(self, persist_directory: str = "./memory_store"):
        self.persist_directory = Path(persist_directory)
        self._client = None
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        logger.info(f"ChromaMemoryStore configured with directory: {persist_directory}")

    async def initialize(self) -> None:
        """Initialize the ChromaDB client."""
        try:
            import chromadb
            from chromadb.config import Settings
        except ImportError:
            raise RuntimeError(
                "chromadb not installed. Install with: pip install semantic-recall[chroma]"
            )

        # Create persist directory if needed
        self.persist_directory.mkdir(parents=True, exist_ok=True)

        self._client = chromadb.PersistentClient(
            path=str(self.persist_directory),
            settings=Settings(
                anonymized_telemetry=False,
                allow_reset=True,
            ),
        )

        names = await self.list_collections()
        logger.info(f"ChromaDB initialized with {len(names)} existing collections")

    def _ensure_initialized(self) -> None:
        """Ensure the store is initialized."""
        if self._client is None:
            raise RuntimeError("ChromaMemoryStore not initialized. Call initialize() first.")

    @staticmethod
    def _chroma_name(name: str) -> str:
        return "rc-" + hashlib.sha1(name.encode("utf-8")).hexdigest()

    def _chroma_names(self) -> set[str]:
        # chromadb >= 0.6 returns names, older releases return Collection objects
        return {
            c if isinstance(c, str) else c.name
            for c in self._client.list_collections()
        }

    def _collection_names(self) -> set[str]:
        """Store names of every collection this store created."""
        names = set()
        for c in self._client.list_collections():
            if isinstance(c, str):
                c = self._client.get_collection(name=c)
            metadata = c.metadata or {}
            if "name" in metadata:
                names.add(metadata["name"])
        return names

    def _exists(self, name: str) -> bool:
        return self._chroma_name(name) in self._chroma_names()

    def _open(self, name: str):
        """Get an existing Chroma collection or raise NotFoundError."""
        self._ensure_initialized()
        if not self._exists(name):
            raise NotFoundError(name)
        return self._client.get_collection(name=self._chroma_name(name))

    def _open_or_create(self, name: str, dimension: Optional[int] = None):
        metadata = {"hnsw:space": "cosine", "name": name}
        if dimension is not None:
            metadata["dimension"] = dimension
        return self._client.get_or_create_collection(
            name=self._chroma_name(name), metadata=metadata
        )

    @staticmethod
    def _dimension_of(chroma_collection) -> Optional[int]:
        """The collection's established dimensionality, if any."""
        metadata = chroma_collection.metadata or {}
        if "dimension" in metadata:
            return int(metadata["dimension"])
        if chroma_collection.count() == 0:
            return None
        sample = chroma_collection.peek(limit=1)
        return len(sample["embeddings"][0])

    def _record_to_metadata(self, record: MemoryRecord) -> dict:
        """Convert a MemoryRecord to ChromaDB metadata."""
        return {
            "description": record.description,
            "external_source_name": record.external_source_name,
            "is_reference": record.is_reference,
            "timestamp": record.timestamp.isoformat() if record.timestamp else "",
        }

    def _metadata_to_record(
        self, id: str, metadata: dict, document: Optional[str], embedding: Sequence[float]
    ) -> MemoryRecord:
        """Convert ChromaDB metadata back to a MemoryRecord."""
        metadata = metadata or {}
        timestamp = metadata.get("timestamp")
        return MemoryRecord(
            id=id,
            text=document or "",
            embedding=tuple(embedding),
            description=metadata.get("description", ""),
            external_source_name=metadata.get("external_source_name", ""),
            is_reference=bool(metadata.get("is_reference", False)),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
        )

    async def create_collection(self, name: str, dimension: Optional[int] = None) -> None:
        self._ensure_initialized()
        if self._exists(name):
            return
        self._open_or_create(name, dimension)
        logger.info(f"Created collection: {name}")

    async def collection_exists(self, name: str) -> bool:
        self._ensure_initialized()
        return self._exists(name)

    async def delete_collection(self, name: str) -> None:
        self._ensure_initialized()
        if not self._exists(name):
            return
        async with self._locks[name]:
            if self._exists(name):
                self._client.delete_collection(name=self._chroma_name(name))
        self._locks.pop(name, None)
        logger.info(f"Deleted collection: {name}")

    async def list_collections(self) -> set[str]:
        self._ensure_initialized()
        return self._collection_names()

    async def upsert(self, collection: str, record: MemoryRecord) -> str:
        """Insert or replace a record."""
        return (await self.upsert_batch(collection, [record]))[0]

    async def upsert_batch(self, collection: str, records: Sequence[MemoryRecord]) -> list[str]:
        """Insert or replace several records with a single Chroma upsert."""
        self._ensure_initialized()
        if not records:
            return []

        batch_dimension = None
        for record in records:
            batch_dimension = validate_embedding(record.embedding, batch_dimension).size

        async with self._locks[collection]:
            chroma_collection = self._open_or_create(collection)
            dimension = self._dimension_of(chroma_collection)
            if dimension is not None and dimension != batch_dimension:
                raise ValidationError(
                    f"Embedding dimension {batch_dimension} does not match "
                    f"collection dimension {dimension}"
                )

            now = datetime.now()
            stamped = [replace(r, timestamp=now) for r in records]

            chroma_collection.upsert(
                ids=[r.id for r in stamped],
                embeddings=[list(r.embedding) for r in stamped],
                documents=[r.text for r in stamped],
                metadatas=[self._record_to_metadata(r) for r in stamped],
            )

        logger.debug(f"Upserted {len(stamped)} record(s) into {collection}")
        return [r.id for r in stamped]

    async def get(self, collection: str, id: str) -> Optional[MemoryRecord]:
        chroma_collection = self._open(collection)
        results = chroma_collection.get(
            ids=[id],
            include=["documents", "metadatas", "embeddings"],
        )

        if len(results["ids"]) == 0:
            return None
        return self._metadata_to_record(
            id=results["ids"][0],
            metadata=results["metadatas"][0],
            document=results["documents"][0],
            embedding=results["embeddings"][0],
        )

    async def remove(self, collection: str, id: str) -> None:
        self._ensure_initialized()
        if not self._exists(collection):
            return
        async with self._locks[collection]:
            if self._exists(collection):
                self._open(collection).delete(ids=[id])

    async def search(
        self,
        collection: str,
        query_embedding: Sequence[float],
        limit: int,
        min_relevance_score: float,
    ) -> list[SearchResult]:
        """Search for similar records."""
        chroma_collection = self._open(collection)
        query = validate_embedding(query_embedding, self._dimension_of(chroma_collection))

        total = chroma_collection.count()
        if limit <= 0 or total == 0:
            return []

        results = chroma_collection.query(
            query_embeddings=[query.tolist()],
            n_results=min(limit * self.CANDIDATE_MULTIPLIER, total),
            include=["documents", "metadatas", "embeddings"],
        )

        scored = []
        if len(results["ids"]) and len(results["ids"][0]):
            for i, id in enumerate(results["ids"][0]):
                record = self._metadata_to_record(
                    id=id,
                    metadata=results["metadatas"][0][i],
                    document=results["documents"][0][i],
                    embedding=results["embeddings"][0][i],
                )
                scored.append((record, cosine_similarity(record.embedding, query)))

        return rank_results(scored, limit, min_relevance_score)

    async def count(self, collection: str) -> int:
        return self._open(collection).count()

    async def close(self) -> None:
        """Clean up resources."""
        # ChromaDB PersistentClient handles cleanup automatically
        self._client = None
        logger.info("ChromaDB connection closed")
