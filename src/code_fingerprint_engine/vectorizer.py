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
Frequency vectorizer - canonical strings to fixed-length embeddings.
"""

from collections import Counter
from typing import Mapping

import numpy as np

from .canonicalizer import DELIMITER
from .errors import VectorizeError
from .vocabulary import Vocabulary


def node_frequencies(canonical: str) -> Counter:
    """Count how often each term occurs in a canonical string."""
    return Counter(canonical.split(DELIMITER))


def frequencies_to_embedding(
    frequencies: Mapping[str, int],
    vocabulary: Vocabulary,
) -> np.ndarray:
    """
    Project a term-frequency map onto the vocabulary axes.

    Terms outside the vocabulary are dropped; vocabulary terms with no
    occurrences are 0.

    Returns:
        float32 array of length len(vocabulary)
    """
    embedding = np.zeros(len(vocabulary), dtype=np.float32)

    for term, count in frequencies.items():
        if count < 0:
            raise VectorizeError(f"Negative frequency {count} for term {term!r}")
        position = vocabulary.position(term)
        if position is not None:
            embedding[position] = count

    return embedding


def vectorize(canonical: str, vocabulary: Vocabulary) -> np.ndarray:
    """Embedding of a canonical string against a vocabulary."""
    return frequencies_to_embedding(node_frequencies(canonical), vocabulary)
