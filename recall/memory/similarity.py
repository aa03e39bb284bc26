"""
Cosine relevance scoring and result ranking.

Shared by every backend so that ordering, filtering and truncation
behave identically no matter where the vectors live.
"""

from typing import Iterable, Optional, Sequence

import numpy as np

from ..errors import ValidationError
from .base import MemoryRecord, SearchResult


def validate_embedding(embedding: Sequence[float], dimension: Optional[int] = None) -> np.ndarray:
    """
    Check an embedding and return it as a float vector.

    Args:
        embedding: The vector to check
        dimension: Required length, or None if not yet established

    Raises:
        ValidationError: If the vector is empty, non-finite or the wrong length.
    """
    try:
        vector = np.asarray(embedding, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Embedding is not numeric: {e}") from e

    if vector.ndim != 1 or vector.size == 0:
        raise ValidationError("Embedding must be a non-empty flat sequence of floats")
    if not np.all(np.isfinite(vector)):
        raise ValidationError("Embedding contains NaN or infinite values")
    if dimension is not None and vector.size != dimension:
        raise ValidationError(
            f"Embedding dimension {vector.size} does not match collection dimension {dimension}"
        )
    return vector


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors, clamped to [-1, 1].

    Zero-norm vectors have similarity 0 with everything.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / (norm_a * norm_b), -1.0, 1.0))


def cosine_similarities(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of every row of `matrix` against `query`.

    Vectorized form of cosine_similarity() for linear scans.
    """
    query_norm = np.linalg.norm(query)
    if query_norm == 0:
        return np.zeros(matrix.shape[0])

    row_norms = np.linalg.norm(matrix, axis=1)
    denominators = row_norms * query_norm
    scores = np.divide(
        matrix @ query,
        denominators,
        out=np.zeros(matrix.shape[0]),
        where=denominators != 0,
    )
    return np.clip(scores, -1.0, 1.0)


def rank_results(
    scored: Iterable[tuple[MemoryRecord, float]],
    limit: int,
    min_relevance_score: float,
) -> list[SearchResult]:
    """
    Filter, order and truncate scored records.

    Keeps scores >= min_relevance_score, orders by descending score
    with ties broken by ascending record ID, and returns at most `limit`.
    """
    if limit <= 0:
        return []

    kept = [
        (record, float(score))
        for record, score in scored
        if score >= min_relevance_score
    ]
    kept.sort(key=lambda pair: (-pair[1], pair[0].id))

    return [SearchResult(record=record, relevance=score) for record, score in kept[:limit]]
