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
Flat syntax-tree arena.

A parsed tree is copied into parallel lists indexed by an integer node id.
Nodes are appended in post-order, so every child id is smaller than its
parent's id and the root is always the last node. Per-node results
(canonical strings, frequency maps) can then live in plain lists that
are discarded together with the tree.
"""

from typing import List, Sequence, Tuple


class SyntaxTree:
    """Post-order arena of syntax nodes for one source file."""

    def __init__(self, source: bytes = b""):
        self.source = source
        self.kinds: List[str] = []
        self.named: List[bool] = []
        self.children: List[Tuple[int, ...]] = []
        self.start_bytes: List[int] = []
        self.end_bytes: List[int] = []
        self.start_lines: List[int] = []
        self.end_lines: List[int] = []
        self.has_error = False

    def __len__(self) -> int:
        return len(self.kinds)

    @property
    def root(self) -> int:
        """Id of the root node."""
        if not self.kinds:
            raise IndexError("Empty syntax tree has no root")
        return len(self.kinds) - 1

    def add(
        self,
        kind: str,
        named: bool = True,
        children: Sequence[int] = (),
        start_byte: int = 0,
        end_byte: int = 0,
        start_line: int = 0,
        end_line: int = 0,
    ) -> int:
        """
        Append a node whose children have already been added.

        Returns:
            The new node's id

        Raises:
            ValueError: If a child id does not refer to an earlier node
        """
        node_id = len(self.kinds)
        children = tuple(children)
        for child in children:
            if not 0 <= child < node_id:
                raise ValueError(
                    f"Child {child} of {kind!r} must be added before its parent"
                )

        self.kinds.append(kind)
        self.named.append(named)
        self.children.append(children)
        self.start_bytes.append(start_byte)
        self.end_bytes.append(end_byte)
        self.start_lines.append(start_line)
        self.end_lines.append(end_line)
        return node_id

    def text(self, node_id: int) -> str:
        """Raw source text covered by a node."""
        span = self.source[self.start_bytes[node_id]:self.end_bytes[node_id]]
        return span.decode("utf-8", errors="replace")

    def named_children(self, node_id: int) -> List[int]:
        return [c for c in self.children[node_id] if self.named[c]]

    def preorder(self, node_id: int = None) -> List[Tuple[int, int]]:
        """(node_id, depth) pairs in source order, starting at node_id."""
        if node_id is None:
            node_id = self.root

        ordered = []
        stack = [(node_id, 0)]
        while stack:
            current, depth = stack.pop()
            ordered.append((current, depth))
            for child in reversed(self.children[current]):
                stack.append((child, depth + 1))
        return ordered

    @classmethod
    def from_tree_sitter(cls, tree, source: bytes) -> "SyntaxTree":
        """
        Copy a tree-sitter tree into an arena.

        Walks iteratively so very deep trees don't hit the recursion limit.
        The tree-sitter tree is not referenced afterwards.
        """
        arena = cls(source)
        root = tree.root_node
        arena.has_error = root.has_error

        # (node, remaining children, ids of finished children)
        stack = [(root, iter(root.children), [])]
        while stack:
            node, pending, finished = stack[-1]
            child = next(pending, None)
            if child is not None:
                stack.append((child, iter(child.children), []))
                continue

            stack.pop()
            node_id = arena.add(
                kind=node.type,
                named=node.is_named,
                children=finished,
                start_byte=node.start_byte,
                end_byte=node.end_byte,
                start_line=node.start_point[0],
                end_line=node.end_point[0],
            )
            if stack:
                stack[-1][2].append(node_id)

        return arena
