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
Subtree canonicalizer.

Every node gets a canonical string: its own kind label followed by the
canonical strings of its named children, joined by DELIMITER. Identifiers
stay anonymous ("identifier") so matching is name-blind, except type
identifiers, which embed the referenced type name.

    func Area(s Shape) float64 { ... }

    function_declaration:identifier:parameter_list:parameter_declaration:
    identifier:type_identifier_Shape:type_identifier_float64:block...

The delimiter is not escaped. A type name containing ":" would make the
string ambiguous; Go identifiers cannot contain it.
"""

from typing import List

from .syntax import SyntaxTree


DELIMITER = ":"
TYPE_IDENTIFIER = "type_identifier"
TYPE_IDENTIFIER_PREFIX = "type_identifier_"


def node_label(tree: SyntaxTree, node_id: int) -> str:
    """The node's own contribution to its canonical string."""
    kind = tree.kinds[node_id]
    if kind == TYPE_IDENTIFIER:
        return TYPE_IDENTIFIER_PREFIX + tree.text(node_id)
    return kind


def canonicalize(tree: SyntaxTree) -> List[str]:
    """
    Compute the canonical string of every node in the tree.

    Args:
        tree: Post-order syntax arena

    Returns:
        List indexed by node id. Unnamed nodes get an entry too, but it is
        never used when composing their parents.
    """
    strings: List[str] = [""] * len(tree)

    # Post-order ids: children are always finished before their parent
    for node_id in range(len(tree)):
        parts = [node_label(tree, node_id)]
        for child in tree.children[node_id]:
            if tree.named[child]:
                parts.append(strings[child])
        strings[node_id] = DELIMITER.join(parts)

    return strings
