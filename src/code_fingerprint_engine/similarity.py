# Code Fingerprint Engine - Structural fingerprints for code similarity search
# Copyright (C) 2025  Jonathan Louis
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Similarity evaluator.

Cosine similarity between term-frequency maps, used for local
diagnostics, and the matching distance functions the declaration
store ranks by. Counts are never negative, so similarities fall in
[0, 1]. A zero-norm operand has similarity 0 with everything,
including another zero-norm operand.
"""

from typing import List, Mapping, Sequence, Tuple
import math

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity, euclidean_distances


METRICS = ("cosine", "l2")


def cosine(freq_a: Mapping[str, float], freq_b: Mapping[str, float]) -> float:
    """
    Cosine similarity of two term-frequency maps.

    Returns:
        dot(a, b) / (|a| * |b|), or 0.0 if either norm is zero
    """
    dot = 0.0
    norm_a = 0.0
    for term, count in freq_a.items():
        dot += count * freq_b.get(term, 0)
        norm_a += count * count

    norm_b = sum(count * count for count in freq_b.values())

    if norm_a == 0 or norm_b == 0:
        return 0.0

    # One square root keeps cosine(v, v) exactly 1 for integer counts
    similarity = dot / math.sqrt(norm_a * norm_b)
    # Clamp float rounding on identical inputs
    return min(similarity, 1.0)


def similarity_table(
    frequencies: Sequence[Mapping[str, float]],
) -> List[Tuple[int, int, float]]:
    """All ordered pairs (i, j, cosine) between frequency maps."""
    return [
        (i, j, cosine(a, b))
        for i, a in enumerate(frequencies)
        for j, b in enumerate(frequencies)
    ]


def similarity_matrix(embeddings: np.ndarray) -> np.ndarray:
    """
    Pairwise cosine similarity of embedding rows.

    Zero rows score 0 against every row, themselves included.

    Returns:
        (n, n) array with values in [0, 1]
    """
    embeddings = np.atleast_2d(np.asarray(embeddings, dtype=np.float32))
    if embeddings.shape[0] == 0:
        return np.zeros((0, 0), dtype=np.float32)
    return np.clip(cosine_similarity(embeddings), 0.0, 1.0)


def distances(query: np.ndarray, matrix: np.ndarray, metric: str = "cosine") -> np.ndarray:
    """
    Distance from one query embedding to each row of a matrix.

    Args:
        query: 1-D embedding
        matrix: (n, dim) stored embeddings
        metric: "cosine" (1 - similarity) or "l2" (Euclidean)

    Returns:
        1-D array of n distances, smaller is nearer
    """
    if metric not in METRICS:
        raise ValueError(f"Unknown metric: {metric} (expected one of {', '.join(METRICS)})")

    if matrix.shape[0] == 0:
        return np.zeros(0, dtype=np.float32)

    query = np.asarray(query, dtype=np.float32).reshape(1, -1)

    if metric == "l2":
        return euclidean_distances(query, matrix)[0]

    similarities = np.clip(cosine_similarity(query, matrix)[0], 0.0, 1.0)
    return 1.0 - similarities
