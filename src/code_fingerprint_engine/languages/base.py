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
Base grammar interface.
"""

from abc import ABC, abstractmethod
from typing import FrozenSet, List, Tuple

from ..canonicalizer import TYPE_IDENTIFIER, TYPE_IDENTIFIER_PREFIX
from ..syntax import SyntaxTree


ERROR_KIND = "ERROR"


class BaseGrammar(ABC):
    """Abstract base class for language grammars."""

    name: str = ""
    extensions: FrozenSet[str] = frozenset()
    declaration_kinds: FrozenSet[str] = frozenset()
    # Predeclared type names, each a vocabulary term of its own
    builtin_types: Tuple[str, ...] = ()

    @abstractmethod
    def parse(self, source: bytes) -> SyntaxTree:
        """
        Parse source bytes into a syntax arena.

        Args:
            source: Raw file content

        Returns:
            Post-order SyntaxTree holding the source

        Raises:
            ParseError: If the source cannot be parsed
        """
        pass

    @abstractmethod
    def node_kinds(self) -> List[str]:
        """Named node kinds of the grammar, in grammar order."""
        pass

    def vocabulary_terms(self) -> List[str]:
        """
        Terms of a vocabulary for this grammar.

        The node kinds, with bare type_identifier replaced by one
        type_identifier_<name> term per builtin type, and ERROR so that
        trees with syntax errors can still be fingerprinted.
        """
        terms = [kind for kind in self.node_kinds() if kind != TYPE_IDENTIFIER]
        if ERROR_KIND not in terms:
            terms.append(ERROR_KIND)
        terms.extend(TYPE_IDENTIFIER_PREFIX + name for name in self.builtin_types)
        return terms
