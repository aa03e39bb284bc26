"""
Memory Manager - Orchestrates the embedding memory.

This is the high-level interface callers use. It handles:
- Embedding text through the configured provider
- Saving information and references into collections
- Searching collections with free-text queries
- Recalling the single most relevant memory for a question
"""

import logging
from typing import Literal, Optional

from .base import MemoryRecord, MemoryStore, SearchResult
from .embeddings import EmbeddingService, create_embedding_service
from .volatile_store import VolatileMemoryStore

logger = logging.getLogger("recall.memory.manager")


class MemoryManager:
    """
    Semantic memory over a MemoryStore and an EmbeddingService.

    The store is passed in explicitly; the manager never reaches for a
    global one. `collection`, `min_relevance_score` and `search_limit` are
    the defaults used by recall() and get_context(), chosen by whoever
    builds the manager.
    """

    def __init__(
        self,
        memory_store: MemoryStore,
        embedding_service: EmbeddingService,
        collection: str = "aboutMe",
        min_relevance_score: float = 0.77,
        search_limit: int = 5,
    ):
        self.memory_store = memory_store
        self.embedding_service = embedding_service
        self.collection = collection
        self.min_relevance_score = min_relevance_score
        self.search_limit = search_limit
        self._initialized = False
        logger.info("MemoryManager created")

    async def initialize(self) -> None:
        """Initialize the memory system."""
        await self.memory_store.initialize()
        self._initialized = True
        collections = await self.memory_store.list_collections()
        logger.info(f"MemoryManager initialized with {len(collections)} collections")

    def _ensure_initialized(self) -> None:
        """Ensure the system is initialized."""
        if not self._initialized:
            raise RuntimeError("MemoryManager not initialized. Call initialize() first.")

    async def save_information(
        self,
        collection: str,
        text: str,
        id: str,
        description: str = "",
        external_source_name: str = "",
    ) -> str:
        """
        Embed a piece of text and store it.

        Args:
            collection: Collection to store into (created if needed)
            text: The information to remember
            id: Record ID; saving again with the same ID replaces it
            description: Optional label
            external_source_name: Optional provenance tag

        Returns:
            The ID of the stored record
        """
        self._ensure_initialized()

        embedding = await self.embedding_service.embed(text)
        record = MemoryRecord.local_record(
            id=id,
            text=text,
            embedding=embedding,
            description=description,
            external_source_name=external_source_name,
        )
        stored_id = await self.memory_store.upsert(collection, record)
        logger.info(f"Saved information {stored_id} to {collection}")
        return stored_id

    async def save_reference(
        self,
        collection: str,
        text: str,
        external_id: str,
        external_source_name: str,
        description: str = "",
    ) -> str:
        """
        Store a pointer to content that lives in another system.

        The text is embedded for search but not kept; the stored record
        carries only the external ID and source name.
        """
        self._ensure_initialized()

        embedding = await self.embedding_service.embed(text)
        record = MemoryRecord.reference_record(
            external_id=external_id,
            source_name=external_source_name,
            embedding=embedding,
            description=description,
        )
        stored_id = await self.memory_store.upsert(collection, record)
        logger.info(f"Saved reference {stored_id} ({external_source_name}) to {collection}")
        return stored_id

    async def search(
        self,
        collection: str,
        query: str,
        limit: int,
        min_relevance_score: float,
    ) -> list[SearchResult]:
        """Embed a free-text query and search a collection with it."""
        self._ensure_initialized()

        if limit <= 0:
            # Still surface a missing collection
            await self.memory_store.count(collection)
            return []

        query_embedding = await self.embedding_service.embed(query)
        results = await self.memory_store.search(
            collection,
            query_embedding,
            limit=limit,
            min_relevance_score=min_relevance_score,
        )
        logger.debug(f"Search in {collection} returned {len(results)} result(s)")
        return results

    async def get(self, collection: str, id: str) -> Optional[MemoryRecord]:
        self._ensure_initialized()
        return await self.memory_store.get(collection, id)

    async def remove(self, collection: str, id: str) -> None:
        self._ensure_initialized()
        await self.memory_store.remove(collection, id)

    async def list_collections(self) -> set[str]:
        self._ensure_initialized()
        return await self.memory_store.list_collections()

    async def recall(
        self,
        question: str,
        collection: Optional[str] = None,
        min_relevance_score: Optional[float] = None,
    ) -> str:
        """
        Answer a question with the most relevant remembered text.

        Returns:
            The top result's text, or "" if nothing clears the threshold
        """
        results = await self.search(
            collection or self.collection,
            question,
            limit=1,
            min_relevance_score=(
                self.min_relevance_score if min_relevance_score is None else min_relevance_score
            ),
        )
        if not results:
            logger.info(f"Nothing relevant recalled for: {question}")
            return ""
        return results[0].record.text

    async def get_context(
        self,
        question: str,
        collection: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> str:
        """
        Build a context block of relevant memories for an LLM prompt.
        """
        results = await self.search(
            collection or self.collection,
            question,
            limit=self.search_limit if limit is None else limit,
            min_relevance_score=self.min_relevance_score,
        )
        if not results:
            return ""

        lines = ["## Relevant Memories", ""]
        for result in results:
            lines.append(result.record.to_context_string())
            lines.append(f"  *Relevance: {result.relevance:.1%}*")
        return "\n".join(lines)

    async def close(self) -> None:
        """Clean up resources."""
        await self.memory_store.close()
        logger.info("MemoryManager closed")


async def create_memory_manager(
    store_type: Literal["volatile", "chroma", "pgvector"] = "volatile",
    embedding_provider: Literal["openai", "local"] = "openai",
    openai_api_key: str = "",
    embedding_model: str = "",
    embedding_dimensions: int | None = None,
    postgres_url: str = "",
    pgvector_table: str = "memory_records",
    chroma_path: str = "./memory_store",
    collection: str = "aboutMe",
    min_relevance_score: float = 0.77,
    search_limit: int = 5,
) -> MemoryManager:
    """
    Factory function to create a configured MemoryManager.

    Args:
        store_type: "volatile" for in-process, "chroma" for local disk,
            "pgvector" for production
        embedding_provider: "openai" or "local"
        openai_api_key: Required for OpenAI embeddings
        embedding_model: Embedding model name (optional, uses defaults)
        embedding_dimensions: Override OpenAI output dimensions
        postgres_url: Required for pgvector store
        pgvector_table: Records table for pgvector store
        chroma_path: Path for ChromaDB storage
        collection: Default collection for recall()
        min_relevance_score: Default threshold for recall()
        search_limit: Default number of memories for get_context()

    Returns:
        Initialized MemoryManager
    """
    embedding_service = create_embedding_service(
        provider=embedding_provider,
        api_key=openai_api_key,
        model=embedding_model,
        dimensions=embedding_dimensions,
    )

    if store_type == "volatile":
        memory_store = VolatileMemoryStore()
    elif store_type == "chroma":
        from .chroma_store import ChromaMemoryStore
        memory_store = ChromaMemoryStore(persist_directory=chroma_path)
    elif store_type == "pgvector":
        if not postgres_url:
            raise ValueError("postgres_url required for pgvector store")
        from .pgvector_store import PgVectorMemoryStore
        memory_store = PgVectorMemoryStore(
            connection_string=postgres_url,
            table_name=pgvector_table,
            embedding_dimension=embedding_dimensions,
        )
    else:
        raise ValueError(f"Unknown store type: {store_type}")

    manager = MemoryManager(
        memory_store=memory_store,
        embedding_service=embedding_service,
        collection=collection,
        min_relevance_score=min_relevance_score,
        search_limit=search_limit,
    )

    await manager.initialize()
    return manager
