"""
Test fixtures and sample data for Semantic Recall tests.
"""

from recall.errors import ProviderError
from recall.memory.base import MemoryRecord
from recall.memory.embeddings import EmbeddingService

# Each axis of the stub embedding counts mentions of one topic
TOPIC_KEYWORDS = [
    ("name", "andrea"),
    ("work", "job", "operator"),
    ("live", "seattle", "home"),
    ("visited", "travel", "france", "italy"),
    ("family", "new york"),
]

ABOUT_ME = {
    "info1": "My name is Andrea",
    "info2": "I currently work as a tourist operator",
    "info3": "I currently live in Seattle and have been living there since 2005",
    "info4": "I visited France and Italy five times since 2015",
    "info5": "My family is from New York",
}


class StubEmbeddingService(EmbeddingService):
    """
    Deterministic keyword embedding for tests.

    Texts about the same topic point the same way, so the expected
    nearest neighbor is known exactly.
    """

    def __init__(self, fail_with: Exception | None = None):
        self.fail_with = fail_with
        self.calls: list[str] = []

    @property
    def dimension(self) -> int:
        return len(TOPIC_KEYWORDS)

    def vector_for(self, text: str) -> list[float]:
        lowered = text.lower()
        return [
            float(sum(lowered.count(keyword) for keyword in keywords))
            for keywords in TOPIC_KEYWORDS
        ]

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        return self.vector_for(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


def make_record(
    id: str = "rec1",
    embedding: tuple[float, ...] = (1.0, 0.0, 0.0),
    text: str = "",
    description: str = "",
    external_source_name: str = "",
) -> MemoryRecord:
    """Create a MemoryRecord for testing."""
    return MemoryRecord(
        id=id,
        text=text or f"text for {id}",
        embedding=embedding,
        description=description,
        external_source_name=external_source_name,
    )


def rate_limited() -> ProviderError:
    """A provider failure as the OpenAI service would raise it."""
    return ProviderError("Embedding provider rate limited: 429")
