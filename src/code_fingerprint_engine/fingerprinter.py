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
Per-file fingerprinting pipeline.

    source bytes -> grammar.parse -> SyntaxTree
                 -> canonicalize  -> canonical string per node
                 -> select        -> declaration roots + term frequencies
                 -> vectorize     -> one DeclarationRecord per root

FingerprintEngine bundles the grammar and the vocabulary. It is built
once per process and shared read-only by every worker thread.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from .canonicalizer import canonicalize
from .errors import ParseError
from .languages.base import BaseGrammar
from .models import DeclarationRecord
from .selector import Declaration, select_declarations
from .syntax import SyntaxTree
from .vectorizer import frequencies_to_embedding
from .vocabulary import Vocabulary


@dataclass
class FileFingerprint:
    """Everything derived from one parsed source file."""

    source_file: str
    tree: SyntaxTree
    canonical: List[str]
    declarations: List[Declaration]

    def canonical_string(self, node_id: int) -> str:
        return self.canonical[node_id]

    def records(self, vocabulary: Vocabulary) -> List[DeclarationRecord]:
        """One record per declaration root, in declaration order."""
        return [self.record(d, vocabulary) for d in self.declarations]

    def record(self, declaration: Declaration, vocabulary: Vocabulary) -> DeclarationRecord:
        node_id = declaration.node_id
        return DeclarationRecord(
            source_file=self.source_file,
            start_line=self.tree.start_lines[node_id],
            end_line=self.tree.end_lines[node_id],
            canonical_string=self.canonical[node_id],
            raw_text=self.tree.text(node_id),
            embedding=frequencies_to_embedding(declaration.frequencies, vocabulary),
            kind=declaration.kind,
        )


@dataclass(frozen=True)
class FingerprintEngine:
    """Immutable grammar + vocabulary pair shared by all workers."""

    grammar: BaseGrammar
    vocabulary: Vocabulary

    @property
    def dimension(self) -> int:
        return len(self.vocabulary)

    def fingerprint_source(self, source: bytes, source_file: str = "<memory>") -> FileFingerprint:
        """
        Fingerprint in-memory source.

        Raises:
            ParseError: If the grammar cannot parse the source
        """
        try:
            tree = self.grammar.parse(source)
        except ParseError as e:
            if e.path is None:
                e.path = source_file
            raise

        canonical = canonicalize(tree)
        declarations = select_declarations(tree, canonical, self.grammar.declaration_kinds)

        return FileFingerprint(
            source_file=source_file,
            tree=tree,
            canonical=canonical,
            declarations=declarations,
        )

    def fingerprint_file(self, path: Union[str, Path]) -> FileFingerprint:
        """
        Read and fingerprint a source file.

        Raises:
            ParseError: If the file is unreadable or cannot be parsed
        """
        try:
            source = Path(path).read_bytes()
        except OSError as e:
            raise ParseError(f"Cannot read file: {e.strerror or e}", path=str(path)) from e

        return self.fingerprint_source(source, str(path))

    def records_for_file(self, path: Union[str, Path]) -> List[DeclarationRecord]:
        """Declaration records of a file, in declaration order."""
        return self.fingerprint_file(path).records(self.vocabulary)
