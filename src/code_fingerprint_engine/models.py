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
Data models for code-fingerprint-engine.
"""

from dataclasses import dataclass, field
from typing import Optional, List

import numpy as np


@dataclass(frozen=True)
class DeclarationRecord:
    """A fingerprinted declaration, as persisted in the store."""

    source_file: str          # Path as given to the ingester
    start_line: int           # 0-indexed row where the declaration starts
    end_line: int             # 0-indexed row where it ends (inclusive)
    canonical_string: str     # Canonical string of the declaration subtree
    raw_text: str             # Source text of the declaration
    embedding: np.ndarray = field(repr=False, compare=False)
    kind: str = ""            # function_declaration, method_declaration, ...
    record_id: Optional[int] = None  # Assigned by the store

    def __post_init__(self):
        embedding = np.array(self.embedding, dtype=np.float32)
        embedding.flags.writeable = False
        object.__setattr__(self, "embedding", embedding)

    @property
    def location(self) -> str:
        """Human-readable location string (1-indexed lines)."""
        return f"{self.source_file}:{self.start_line + 1}-{self.end_line + 1}"

    def preview(self, max_chars: int = 60) -> str:
        """Short preview of the declaration's first line."""
        first_line = self.raw_text.split('\n')[0].strip()
        if len(first_line) > max_chars:
            return first_line[:max_chars-3] + "..."
        return first_line


@dataclass
class SearchMatch:
    """A stored declaration returned by a nearest-neighbour query."""

    record: DeclarationRecord
    distance: float           # Smaller is nearer, metric-dependent


@dataclass
class SearchResult:
    """Nearest stored declarations for one declaration of a query file."""

    query: DeclarationRecord
    matches: List[SearchMatch] = field(default_factory=list)

    @property
    def raw_texts(self) -> List[str]:
        return [m.record.raw_text for m in self.matches]
