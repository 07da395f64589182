"""Vector similarity helpers."""

from typing import Optional, Sequence

import numpy as np


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """
    Cosine similarity between two vectors.

    Returns 0.0 when either vector is missing, empty, all zeros, or when the
    lengths differ (e.g. vectors produced by two different embedding models).
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    magnitude = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if magnitude == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / magnitude)
