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
Go grammar using tree-sitter.

Declarations of interest are functions, methods and type declarations.
"""

from typing import AbstractSet, List, Optional

from .base import BaseGrammar
from ..errors import ParseError
from ..selector import DECLARATION_KINDS
from ..syntax import SyntaxTree


class GoGrammar(BaseGrammar):
    """tree-sitter-go backed grammar."""

    name = "go"
    extensions = frozenset({".go"})
    builtin_types = (
        "any", "bool", "byte", "comparable", "complex64", "complex128", "error",
        "float32", "float64", "int", "int8", "int16", "int32", "int64", "rune",
        "string", "uint", "uint8", "uint16", "uint32", "uint64", "uintptr",
    )

    def __init__(
        self,
        declaration_kinds: Optional[AbstractSet[str]] = None,
        allow_syntax_errors: bool = False,
    ):
        self.declaration_kinds = frozenset(declaration_kinds or DECLARATION_KINDS)
        self.allow_syntax_errors = allow_syntax_errors
        self._language = None

    def _ensure_language(self):
        """Lazy-load the tree-sitter language."""
        if self._language is not None:
            return self._language

        try:
            import tree_sitter_go as tsgo
            from tree_sitter import Language

            self._language = Language(tsgo.language())
        except ImportError as e:
            raise ImportError(
                "tree-sitter-go not installed. "
                "Install with: pip install tree-sitter-go"
            ) from e

        return self._language

    def parse(self, source: bytes) -> SyntaxTree:
        """Parse Go source into a syntax arena."""
        language = self._ensure_language()
        from tree_sitter import Parser

        # Parsers hold mutable state - one per call, so threads never share one
        parser = Parser(language)
        try:
            tree = parser.parse(source)
        except ValueError as e:
            raise ParseError(f"tree-sitter rejected input: {e}") from e

        if tree is None:
            raise ParseError("Error parsing code")

        if tree.root_node.has_error and not self.allow_syntax_errors:
            line = _first_error_line(tree.root_node)
            where = f" near line {line + 1}" if line is not None else ""
            raise ParseError(f"Syntax error{where}")

        return SyntaxTree.from_tree_sitter(tree, source)

    def node_kinds(self) -> List[str]:
        """Named, visible node kinds of the Go grammar."""
        language = self._ensure_language()
        kinds = []
        seen = set()
        for kind_id in range(language.node_kind_count):
            if not (language.node_kind_is_named(kind_id) and language.node_kind_is_visible(kind_id)):
                continue
            kind = language.node_kind_for_id(kind_id)
            if kind and kind not in seen:
                seen.add(kind)
                kinds.append(kind)
        return kinds


def _first_error_line(node) -> Optional[int]:
    """Row of the first ERROR or MISSING node, depth first."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.is_error or current.is_missing:
            return current.start_point[0]
        if current.has_error:
            stack.extend(reversed(current.children))
    return None
