"""
Base interfaces and data structures for the embedding memory.

Defines the record types and the abstract contract that every
memory store backend (volatile, ChromaDB, pgvector) must implement.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional, Sequence

from ..errors import ValidationError


@dataclass(frozen=True)
class MemoryRecord:
    """
    A single remembered piece of text and its embedding.

    Records are immutable: the store hands out the same values it holds,
    and callers derive modified copies with dataclasses.replace().
    """
    id: str
    text: str
    embedding: tuple[float, ...]

    description: str = ""
    external_source_name: str = ""
    # Reference records point at content held elsewhere; their text is empty
    is_reference: bool = False

    # Set by the store on every upsert
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        try:
            embedding = tuple(float(x) for x in self.embedding)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Embedding must be a flat sequence of numbers: {e}") from e
        object.__setattr__(self, "embedding", embedding)
        if not self.id:
            object.__setattr__(self, "id", uuid.uuid4().hex)

    @property
    def dimension(self) -> int:
        return len(self.embedding)

    @classmethod
    def local_record(
        cls,
        id: str,
        text: str,
        embedding: Sequence[float],
        description: str = "",
        external_source_name: str = "",
    ) -> "MemoryRecord":
        """Create a record that holds its own text."""
        return cls(
            id=id,
            text=text,
            embedding=tuple(embedding),
            description=description,
            external_source_name=external_source_name,
        )

    @classmethod
    def reference_record(
        cls,
        external_id: str,
        source_name: str,
        embedding: Sequence[float],
        description: str = "",
    ) -> "MemoryRecord":
        """Create a record that only references content in an external system."""
        return cls(
            id=external_id,
            text="",
            embedding=tuple(embedding),
            description=description,
            external_source_name=source_name,
            is_reference=True,
        )

    def to_context_string(self) -> str:
        """
        Format this memory for inclusion in LLM context.
        """
        label = f" ({self.description})" if self.description else ""
        source = f" [source: {self.external_source_name}]" if self.external_source_name else ""
        body = self.text if not self.is_reference else f"<reference {self.id}>"
        return f"- {body}{label}{source}"


@dataclass(frozen=True)
class SearchResult:
    """A search hit: the stored record and its relevance to the query."""
    record: MemoryRecord
    relevance: float  # cosine similarity in [-1, 1], higher is more similar

    def __iter__(self) -> Iterator:
        # Allows `for record, score in results`
        yield self.record
        yield self.relevance


class MemoryStore(ABC):
    """
    Abstract interface for embedding memory backends.

    Implementations: VolatileMemoryStore (in-process),
    ChromaMemoryStore (local directory), PgVectorMemoryStore (production)
    """

    async def initialize(self) -> None:
        """Prepare backend resources. In-process stores need nothing."""

    @abstractmethod
    async def create_collection(self, name: str, dimension: Optional[int] = None) -> None:
        """
        Create a collection if it does not already exist.

        Args:
            name: Collection name
            dimension: Fix the embedding dimensionality up front. If None,
                the first upsert establishes it.
        """
        pass

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        """Check whether a collection exists."""
        pass

    @abstractmethod
    async def delete_collection(self, name: str) -> None:
        """Delete a collection and all of its records. No-op if absent."""
        pass

    @abstractmethod
    async def list_collections(self) -> set[str]:
        """Return the names of all collections."""
        pass

    @abstractmethod
    async def upsert(self, collection: str, record: MemoryRecord) -> str:
        """
        Insert or replace a record, keyed by record.id.

        Creates the collection if needed and stamps the record's timestamp.

        Returns:
            The ID of the stored record

        Raises:
            ValidationError: If the embedding is malformed or its
                dimensionality conflicts with the collection's.
        """
        pass

    async def upsert_batch(self, collection: str, records: Sequence[MemoryRecord]) -> list[str]:
        """
        Insert or replace several records.

        Backends override this when they can write the batch atomically.
        """
        return [await self.upsert(collection, record) for record in records]

    @abstractmethod
    async def get(self, collection: str, id: str) -> Optional[MemoryRecord]:
        """
        Get a record by ID.

        Returns:
            The record, or None if the ID is not in the collection

        Raises:
            NotFoundError: If the collection does not exist.
        """
        pass

    @abstractmethod
    async def remove(self, collection: str, id: str) -> None:
        """Remove a record. No-op if the record or collection is absent."""
        pass

    @abstractmethod
    async def search(
        self,
        collection: str,
        query_embedding: Sequence[float],
        limit: int,
        min_relevance_score: float,
    ) -> list[SearchResult]:
        """
        Search a collection for the records most similar to a query.

        Args:
            collection: Collection to search
            query_embedding: The embedding to search for
            limit: Maximum number of results (<= 0 returns nothing)
            min_relevance_score: Drop results scoring below this

        Returns:
            Results ordered by descending relevance, ties by ascending ID

        Raises:
            NotFoundError: If the collection does not exist.
            ValidationError: If the query dimensionality does not match.
        """
        pass

    @abstractmethod
    async def count(self, collection: str) -> int:
        """Get the number of records in a collection."""
        pass

    async def close(self) -> None:
        """Clean up resources."""
