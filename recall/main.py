"""
Semantic Recall demo.

Seeds the "aboutMe" collection with a few facts, then answers questions
by recalling the most relevant fact for each.

Usage:
    python -m recall.main "what is my name?" "where do I live?"

With no arguments a default set of questions is asked.

SETUP REQUIRED:
1. Copy .env.example to .env and set OPENAI_API_KEY
   (or set memory.embedding_provider: local in config.yaml)
2. Install dependencies:
   pip install -e .
"""

import asyncio
import logging
import sys

from .config import config
from .memory import MemoryManager, create_memory_manager

logger = logging.getLogger("recall.main")

ABOUT_ME = {
    "info1": "My name is Andrea",
    "info2": "I currently work as a tourist operator",
    "info3": "I currently live in Seattle and have been living there since 2005",
    "info4": "I visited France and Italy five times since 2015",
    "info5": "My family is from New York",
}

DEFAULT_QUESTIONS = [
    "what is my name?",
    "where do I live?",
    "where is my family from?",
    "where have I travelled?",
    "what do I do for work?",
]


async def seed_memories(manager: MemoryManager, collection: str) -> None:
    """Store the sample facts about the user."""
    for id, text in ABOUT_ME.items():
        await manager.save_information(collection, text=text, id=id)
    logger.info(f"Seeded {len(ABOUT_ME)} memories into {collection}")


async def run(questions: list[str]) -> bool:
    """
    Build the memory from config, seed it and answer each question.

    Returns:
        True if every step completed, False on a configuration problem
    """
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        return False

    manager = await create_memory_manager(
        store_type=config.memory.store_type,
        embedding_provider=config.memory.embedding_provider,
        openai_api_key=config.openai.api_key,
        embedding_model=config.memory.embedding_model,
        embedding_dimensions=config.memory.embedding_dimensions,
        postgres_url=config.memory.postgres_url,
        pgvector_table=config.memory.pgvector_table,
        chroma_path=config.memory.chroma_path,
        collection=config.recall.collection,
        min_relevance_score=config.recall.min_relevance_score,
        search_limit=config.recall.search_limit,
    )

    try:
        await seed_memories(manager, config.recall.collection)

        for question in questions:
            answer = await manager.recall(question)
            print(f"Q: {question}")
            print(f"A: {answer or '(nothing relevant remembered)'}")
            print()
    finally:
        await manager.close()

    return True


def main():
    """Entry point for the application."""
    config.setup_logging()
    questions = sys.argv[1:] or DEFAULT_QUESTIONS

    try:
        success = asyncio.run(run(questions))
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(130)
    except Exception as e:
        logger.exception("Fatal error")
        print(f"\nFatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
