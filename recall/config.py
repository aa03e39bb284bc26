"""
Configuration module for Semantic Recall.

Loads application settings from config.yaml and secrets from environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# Default config file path, overridable for deployments and tests
CONFIG_FILE = Path(
    os.getenv("RECALL_CONFIG", Path(__file__).parent.parent / "config.yaml")
)


def _load_yaml_config() -> dict:
    """Load configuration from YAML file."""
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE) as f:
            return yaml.safe_load(f) or {}
    return {}


# Load YAML config once at module import
_yaml_config = _load_yaml_config()


def _get_yaml(section: str, key: str, default=None):
    """Get a value from the YAML config."""
    return _yaml_config.get(section, {}).get(key, default)


@dataclass
class OpenAIConfig:
    """OpenAI API configuration."""
    # Secret from .env
    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))


@dataclass
class MemoryConfig:
    """Embedding memory store configuration."""
    store_type: Literal["volatile", "chroma", "pgvector"] = field(
        default_factory=lambda: _get_yaml("memory", "store_type", "volatile")
    )
    embedding_provider: Literal["openai", "local"] = field(
        default_factory=lambda: _get_yaml("memory", "embedding_provider", "openai")
    )
    # "text-embedding-3-small" (1536d) or "text-embedding-3-large" (3072d)
    openai_embedding_model: str = field(
        default_factory=lambda: _get_yaml("memory", "openai_embedding_model", "text-embedding-3-small")
    )
    local_embedding_model: str = field(
        default_factory=lambda: _get_yaml("memory", "local_embedding_model", "all-MiniLM-L6-v2")
    )
    # Override embedding dimensions; with pgvector this also fixes the
    # vector column size and enables the HNSW index.
    # None = use model's default dimensions
    embedding_dimensions: int | None = field(
        default_factory=lambda: _get_yaml("memory", "embedding_dimensions", None)
    )
    chroma_path: str = field(
        default_factory=lambda: _get_yaml("memory", "chroma_path", "./memory_store")
    )
    pgvector_table: str = field(
        default_factory=lambda: _get_yaml("memory", "pgvector_table", "memory_records")
    )
    # Secret from .env (contains credentials)
    postgres_url: str = field(default_factory=lambda: os.getenv("POSTGRES_URL", ""))

    @property
    def embedding_model(self) -> str:
        """The model name for the configured provider."""
        if self.embedding_provider == "local":
            return self.local_embedding_model
        return self.openai_embedding_model


@dataclass
class RecallConfig:
    """Defaults for the recall() convenience function."""
    collection: str = field(
        default_factory=lambda: _get_yaml("recall", "collection", "aboutMe")
    )
    min_relevance_score: float = field(
        default_factory=lambda: _get_yaml("recall", "min_relevance_score", 0.77)
    )
    search_limit: int = field(
        default_factory=lambda: _get_yaml("recall", "search_limit", 5)
    )


@dataclass
class AppConfig:
    """Application settings from YAML."""
    log_level: str = field(
        default_factory=lambda: _get_yaml("logging", "level", "INFO")
    )


@dataclass
class Config:
    """Main configuration container."""
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    recall: RecallConfig = field(default_factory=RecallConfig)
    app: AppConfig = field(default_factory=AppConfig)

    def setup_logging(self) -> logging.Logger:
        """Configure and return the application logger."""
        # Reset existing handlers to ensure clean configuration
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)

        # An unknown level is reported by validate(); fall back until then
        level = getattr(logging, str(self.app.log_level).upper(), None)
        if not isinstance(level, int):
            level = logging.INFO

        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        return logging.getLogger("recall")

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of missing/invalid settings.

        Returns:
            List of validation error messages, empty if all valid.
        """
        errors = []

        if self.memory.store_type not in ("volatile", "chroma", "pgvector"):
            errors.append(f"Unknown memory.store_type: {self.memory.store_type}")
        if self.memory.store_type == "pgvector" and not self.memory.postgres_url:
            errors.append("POSTGRES_URL is required when using the pgvector store")

        if self.memory.embedding_provider not in ("openai", "local"):
            errors.append(f"Unknown memory.embedding_provider: {self.memory.embedding_provider}")
        if self.memory.embedding_provider == "openai" and not self.openai.api_key:
            errors.append("OPENAI_API_KEY is required when using OpenAI embeddings")

        if not -1.0 <= self.recall.min_relevance_score <= 1.0:
            errors.append("recall.min_relevance_score should be between -1 and 1")
        if self.recall.search_limit <= 0:
            errors.append("recall.search_limit must be positive")

        if not isinstance(getattr(logging, str(self.app.log_level).upper(), None), int):
            errors.append(f"Unknown logging.level: {self.app.log_level}")

        return errors


# Global configuration instance
config = Config()
