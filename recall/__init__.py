"""
Semantic Recall - Embedding memory with cosine-similarity search.

This package stores text alongside its embedding vector in named
collections and answers "what do I remember about this?" questions
by nearest-neighbor search over those vectors.
"""

__version__ = "1.0.0"
