"""Utility functions for database operations."""

import math


def cosine_similarity(vec_a: list[float], vec_b: list[float]) -> float:
    """Compute cosine similarity between two vectors.

    Used as the score for vector matches when the index does not report
    an @index-score.

    Args:
        vec_a: First embedding vector
        vec_b: Second embedding vector

    Returns:
        float: Cosine similarity in [-1, 1]; 0.0 for empty, zero-magnitude
            or mismatched vectors
    """
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    magnitude_a = math.sqrt(sum(a * a for a in vec_a))
    magnitude_b = math.sqrt(sum(b * b for b in vec_b))

    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    return dot_product / (magnitude_a * magnitude_b)


def index_score(result: dict) -> float | None:
    """Read the relevance score RavenDB attaches to query results.

    Args:
        result: Raw query result dict

    Returns:
        float | None: The @index-score metadata value, if present
    """
    score = result.get("@metadata", {}).get("@index-score")
    return float(score) if score is not None else None
