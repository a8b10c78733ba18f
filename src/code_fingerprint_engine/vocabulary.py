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
Vocabulary of node-kind labels.

The vocabulary fixes the axes of every embedding: its line order is the
vector order and its length is the vector dimensionality. Embeddings
produced against different vocabularies are not comparable.
"""

from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple
import hashlib


DEFAULT_VOCABULARY = "node_types_go.txt"


@dataclass(frozen=True)
class Vocabulary:
    """Ordered, immutable list of structural terms."""

    terms: Tuple[str, ...]
    _positions: Dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.terms:
            raise ValueError("Vocabulary is empty")

        positions: Dict[str, int] = {}
        for i, term in enumerate(self.terms):
            if term in positions:
                raise ValueError(f"Duplicate vocabulary term: {term!r}")
            positions[term] = i

        # Frozen dataclass - bypass __setattr__ for the derived lookup
        object.__setattr__(self, "_positions", positions)

    def __len__(self) -> int:
        return len(self.terms)

    def __contains__(self, term: object) -> bool:
        return term in self._positions

    def __iter__(self):
        return iter(self.terms)

    def position(self, term: str) -> Optional[int]:
        """Axis index of a term, or None if it is not in the vocabulary."""
        return self._positions.get(term)

    @property
    def digest(self) -> str:
        """Stable hash of the term order, used to detect vocabulary changes."""
        joined = "\n".join(self.terms).encode("utf-8")
        return hashlib.sha256(joined).hexdigest()[:16]

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "Vocabulary":
        """Build a vocabulary from text lines, ignoring blank ones."""
        terms = [line.strip() for line in lines]
        return cls(tuple(t for t in terms if t))


def load_vocabulary(path: Optional[Path] = None) -> Vocabulary:
    """
    Load a newline-delimited vocabulary file.

    Args:
        path: Vocabulary file. Defaults to the packaged Go vocabulary.

    Returns:
        Vocabulary in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty or repeats a term
    """
    if path is None:
        text = (
            resources.files("code_fingerprint_engine")
            .joinpath("data")
            .joinpath(DEFAULT_VOCABULARY)
            .read_text(encoding="utf-8")
        )
    else:
        text = Path(path).read_text(encoding="utf-8")

    return Vocabulary.from_lines(text.splitlines())


def write_vocabulary(terms: Iterable[str], path: Path) -> int:
    """Write terms one per line. Returns the number written."""
    terms = list(terms)
    Path(path).write_text("\n".join(terms) + "\n", encoding="utf-8")
    return len(terms)
