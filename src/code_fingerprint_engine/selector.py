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
Declaration selector - picks the nodes whose fingerprints are stored.
"""

from collections import Counter
from dataclasses import dataclass
from typing import AbstractSet, List, Sequence

from .syntax import SyntaxTree
from .vectorizer import node_frequencies


DECLARATION_KINDS = frozenset({
    "function_declaration",
    "method_declaration",
    "type_declaration",
})


@dataclass
class Declaration:
    """A declaration root and the term frequencies of its subtree."""

    node_id: int
    kind: str
    frequencies: Counter


def is_declaration(kind: str, declaration_kinds: AbstractSet[str] = DECLARATION_KINDS) -> bool:
    return kind in declaration_kinds


def select_declarations(
    tree: SyntaxTree,
    canonical: Sequence[str],
    declaration_kinds: AbstractSet[str] = DECLARATION_KINDS,
) -> List[Declaration]:
    """
    Find declaration roots and count their terms.

    Roots come back in traversal order (post-order, same as the arena),
    so a type declared inside a function body precedes that function.

    Args:
        tree: Post-order syntax arena
        canonical: Canonical strings indexed by node id
        declaration_kinds: Node kinds that count as declarations

    Returns:
        Declarations in traversal order
    """
    declarations = []
    for node_id, kind in enumerate(tree.kinds):
        if is_declaration(kind, declaration_kinds):
            declarations.append(Declaration(
                node_id=node_id,
                kind=kind,
                frequencies=node_frequencies(canonical[node_id]),
            ))
    return declarations
