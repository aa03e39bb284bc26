"""
Unit tests for recall/memory/chroma_store.py

Runs the store against a small fake of the chromadb client so the
collection mapping, dimension checks and ranking are exercised
without a real ChromaDB installation.
"""

import re
import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from recall.errors import NotFoundError, ValidationError
from recall.memory.chroma_store import ChromaMemoryStore
from tests.fixtures import make_record


class FakeChromaCollection:
    """Just enough of chromadb's Collection for the store."""

    def __init__(self, name: str, metadata: dict | None):
        self.name = name
        self.metadata = metadata
        self.rows: dict[str, dict] = {}

    def count(self) -> int:
        return len(self.rows)

    def peek(self, limit: int = 10):
        ids = list(self.rows)[:limit]
        return {"ids": ids, "embeddings": [self.rows[i]["embedding"] for i in ids]}

    def upsert(self, ids, embeddings, documents, metadatas):
        for id, embedding, document, metadata in zip(ids, embeddings, documents, metadatas):
            self.rows[id] = {"embedding": embedding, "document": document, "metadata": metadata}

    def get(self, ids, include):
        found = [i for i in ids if i in self.rows]
        return {
            "ids": found,
            "documents": [self.rows[i]["document"] for i in found],
            "metadatas": [self.rows[i]["metadata"] for i in found],
            "embeddings": [self.rows[i]["embedding"] for i in found],
        }

    def delete(self, ids):
        for id in ids:
            self.rows.pop(id, None)

    def query(self, query_embeddings, n_results, include):
        query = np.asarray(query_embeddings[0])

        def distance(row):
            v = np.asarray(row["embedding"])
            denom = np.linalg.norm(v) * np.linalg.norm(query)
            return 1.0 - (float(v @ query / denom) if denom else 0.0)

        ranked = sorted(self.rows, key=lambda i: distance(self.rows[i]))[:n_results]
        return {
            "ids": [ranked],
            "documents": [[self.rows[i]["document"] for i in ranked]],
            "metadatas": [[self.rows[i]["metadata"] for i in ranked]],
            "embeddings": [[self.rows[i]["embedding"] for i in ranked]],
            "distances": [[distance(self.rows[i]) for i in ranked]],
        }


class FakeChromaClient:
    """Just enough of chromadb's PersistentClient for the store."""

    # Chroma's own collection name rule
    NAME_RULE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]{1,510}[a-zA-Z0-9]$")

    def __init__(self, *args, **kwargs):
        self.collections: dict[str, FakeChromaCollection] = {}

    def list_collections(self):
        return list(self.collections)

    def get_collection(self, name):
        return self.collections[name]

    def get_or_create_collection(self, name, metadata=None):
        if not self.NAME_RULE.match(name):
            raise ValueError(f"Expected a name containing 3-512 characters, got: {name}")
        if name not in self.collections:
            self.collections[name] = FakeChromaCollection(name, metadata)
        return self.collections[name]

    def delete_collection(self, name):
        del self.collections[name]


@pytest.fixture
def fake_chromadb():
    """Install a fake chromadb module."""
    module = MagicMock()
    module.PersistentClient.side_effect = FakeChromaClient
    config_module = MagicMock()
    with patch.dict(sys.modules, {"chromadb": module, "chromadb.config": config_module}):
        yield module


@pytest.fixture
def chroma_store(fake_chromadb, tmp_path) -> ChromaMemoryStore:
    return ChromaMemoryStore(persist_directory=str(tmp_path / "chroma"))


class TestChromaMemoryStore:
    """Tests for ChromaMemoryStore."""

    @pytest.mark.asyncio
    async def test_requires_initialize(self, chroma_store):
        with pytest.raises(RuntimeError, match="not initialized"):
            await chroma_store.list_collections()

    @pytest.mark.asyncio
    async def test_initialize_creates_directory(self, chroma_store, fake_chromadb, tmp_path):
        await chroma_store.initialize()

        assert (tmp_path / "chroma").is_dir()
        assert fake_chromadb.PersistentClient.call_args.kwargs["path"] == str(tmp_path / "chroma")

    @pytest.mark.asyncio
    async def test_collection_lifecycle(self, chroma_store):
        await chroma_store.initialize()

        await chroma_store.create_collection("aboutMe")
        await chroma_store.create_collection("aboutMe")
        assert await chroma_store.list_collections() == {"aboutMe"}
        assert await chroma_store.collection_exists("aboutMe") is True

        await chroma_store.delete_collection("aboutMe")
        await chroma_store.delete_collection("aboutMe")
        assert await chroma_store.collection_exists("aboutMe") is False

    @pytest.mark.asyncio
    async def test_uses_cosine_space(self, chroma_store):
        await chroma_store.initialize()
        await chroma_store.create_collection("c", dimension=3)

        metadata = chroma_store._client.collections[chroma_store._chroma_name("c")].metadata
        assert metadata == {"hnsw:space": "cosine", "name": "c", "dimension": 3}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["c", "my notes", "aboutMe!", "caf\u00e9"])
    async def test_any_store_name_is_accepted(self, chroma_store, name):
        await chroma_store.initialize()

        await chroma_store.upsert(name, make_record("a", (1.0, 0.0)))

        assert await chroma_store.list_collections() == {name}
        assert await chroma_store.collection_exists(name) is True
        assert (await chroma_store.get(name, "a")).embedding == (1.0, 0.0)
        [chroma_name] = chroma_store._client.collections
        assert FakeChromaClient.NAME_RULE.match(chroma_name)

    @pytest.mark.asyncio
    async def test_similar_names_stay_separate(self, chroma_store):
        await chroma_store.initialize()
        await chroma_store.upsert("notes", make_record("a", (1.0, 0.0)))
        await chroma_store.upsert("Notes", make_record("b", (1.0, 0.0, 0.0)))

        assert await chroma_store.list_collections() == {"notes", "Notes"}
        assert await chroma_store.count("notes") == 1
        assert await chroma_store.count("Notes") == 1

    @pytest.mark.asyncio
    async def test_foreign_collections_not_listed(self, chroma_store):
        await chroma_store.initialize()
        chroma_store._client.get_or_create_collection("someone-else")

        assert await chroma_store.list_collections() == set()

    @pytest.mark.asyncio
    async def test_locks_released(self, chroma_store):
        await chroma_store.initialize()
        await chroma_store.remove("never", "a")
        await chroma_store.delete_collection("never")
        assert "never" not in chroma_store._locks

        await chroma_store.upsert("c", make_record("a", (1.0, 0.0)))
        await chroma_store.delete_collection("c")
        assert chroma_store._locks == {}

    @pytest.mark.asyncio
    async def test_upsert_and_get_round_trip_fields(self, chroma_store):
        await chroma_store.initialize()
        record = make_record("a", (1.0, 0.0), text="hello", description="d", external_source_name="s")

        await chroma_store.upsert("c", record)
        stored = await chroma_store.get("c", "a")

        assert stored.text == "hello"
        assert stored.description == "d"
        assert stored.external_source_name == "s"
        assert stored.embedding == (1.0, 0.0)
        assert stored.timestamp is not None

    @pytest.mark.asyncio
    async def test_get_semantics(self, chroma_store):
        await chroma_store.initialize()
        with pytest.raises(NotFoundError):
            await chroma_store.get("missing", "a")

        await chroma_store.create_collection("c")
        assert await chroma_store.get("c", "a") is None

    @pytest.mark.asyncio
    async def test_dimension_enforced(self, chroma_store):
        await chroma_store.initialize()
        await chroma_store.upsert("c", make_record("a", (1.0, 0.0)))

        with pytest.raises(ValidationError):
            await chroma_store.upsert("c", make_record("b", (1.0, 0.0, 0.0)))
        assert await chroma_store.count("c") == 1

    @pytest.mark.asyncio
    async def test_remove(self, chroma_store):
        await chroma_store.initialize()
        await chroma_store.upsert("c", make_record("a", (1.0, 0.0)))

        await chroma_store.remove("c", "missing")
        await chroma_store.remove("nope", "a")
        assert await chroma_store.count("c") == 1

        await chroma_store.remove("c", "a")
        assert await chroma_store.count("c") == 0

    @pytest.mark.asyncio
    async def test_search(self, chroma_store):
        await chroma_store.initialize()
        await chroma_store.upsert_batch("c", [
            make_record("b-tie", (2.0, 0.0)),
            make_record("a-tie", (1.0, 0.0)),
            make_record("diag", (1.0, 1.0)),
            make_record("away", (-1.0, 0.0)),
        ])

        results = await chroma_store.search("c", [1.0, 0.0], limit=3, min_relevance_score=0.5)

        assert [r.record.id for r in results] == ["a-tie", "b-tie", "diag"]
        assert results[0].relevance == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_search_edge_cases(self, chroma_store):
        await chroma_store.initialize()
        with pytest.raises(NotFoundError):
            await chroma_store.search("missing", [1.0], limit=1, min_relevance_score=0.0)

        await chroma_store.create_collection("empty")
        assert await chroma_store.search("empty", [1.0], limit=1, min_relevance_score=0.0) == []

        await chroma_store.upsert("c", make_record("a", (1.0, 0.0)))
        assert await chroma_store.search("c", [1.0, 0.0], limit=0, min_relevance_score=0.0) == []
        with pytest.raises(ValidationError):
            await chroma_store.search("c", [1.0], limit=1, min_relevance_score=0.0)

    @pytest.mark.asyncio
    async def test_close(self, chroma_store):
        await chroma_store.initialize()
        await chroma_store.close()
        with pytest.raises(RuntimeError):
            await chroma_store.count("c")
