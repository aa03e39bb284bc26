"""
Embedding Memory.

Named collections of text records with embedding vectors, searchable
by cosine similarity, plus the manager that turns free text into
embeddings and answers recall questions.
"""

from .base import MemoryRecord, MemoryStore, SearchResult
from .embeddings import EmbeddingService, create_embedding_service
from .similarity import cosine_similarity
from .volatile_store import VolatileMemoryStore
from .memory_manager import MemoryManager, create_memory_manager

__all__ = [
    "MemoryRecord",
    "MemoryStore",
    "SearchResult",
    "EmbeddingService",
    "create_embedding_service",
    "cosine_similarity",
    "VolatileMemoryStore",
    "MemoryManager",
    "create_memory_manager",
]
