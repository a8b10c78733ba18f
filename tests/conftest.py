"""
Shared fixtures.

SexpGrammar stands in for tree-sitter: source files are written as
s-expressions, so arenas can be built by hand without a real parser.

    (source_file (function_declaration (identifier) (block { })))

- "(kind child ...)"  named node with children
- "(kind Word)"       named leaf whose text is Word
- a bare token among children is an unnamed node (punctuation)
"""

import re
from typing import List

import pytest

from code_fingerprint_engine.errors import ParseError
from code_fingerprint_engine.fingerprinter import FingerprintEngine
from code_fingerprint_engine.languages.base import BaseGrammar
from code_fingerprint_engine.selector import DECLARATION_KINDS
from code_fingerprint_engine.store import DeclarationStore
from code_fingerprint_engine.syntax import SyntaxTree
from code_fingerprint_engine.vocabulary import Vocabulary


_TOKEN = re.compile(rb"\(|\)|[^\s()]+")

SEXP_KINDS = [
    "source_file",
    "function_declaration",
    "method_declaration",
    "type_declaration",
    "identifier",
    "parameter_list",
    "block",
    "return_statement",
]


class SexpGrammar(BaseGrammar):
    """Grammar over s-expression source files (*.sx)."""

    name = "sexp"
    extensions = frozenset({".sx"})

    def __init__(self, declaration_kinds=None, allow_syntax_errors=False):
        self.declaration_kinds = frozenset(declaration_kinds or DECLARATION_KINDS)
        self.allow_syntax_errors = allow_syntax_errors

    def parse(self, source: bytes) -> SyntaxTree:
        tokens = [(m.group(), m.start(), m.end()) for m in _TOKEN.finditer(source)]
        tree = SyntaxTree(source)
        pos, _ = self._parse_node(tokens, 0, tree)
        if pos != len(tokens):
            raise ParseError("Syntax error: trailing input")
        return tree

    def node_kinds(self) -> List[str]:
        return list(SEXP_KINDS) + ["type_identifier"]

    def _parse_node(self, tokens, pos, tree):
        if pos >= len(tokens) or tokens[pos][0] != b"(":
            raise ParseError("Syntax error: expected '('")
        if pos + 1 >= len(tokens) or tokens[pos + 1][0] in (b"(", b")"):
            raise ParseError("Syntax error: expected node kind")

        start = tokens[pos][1]
        kind = tokens[pos + 1][0].decode()
        pos += 2

        # (kind Word) - leaf carrying text
        if (
            pos + 1 < len(tokens)
            and tokens[pos][0] not in (b"(", b")")
            and tokens[pos + 1][0] == b")"
        ):
            _, word_start, word_end = tokens[pos]
            return pos + 2, _add(tree, kind, True, (), word_start, word_end)

        children = []
        while True:
            if pos >= len(tokens):
                raise ParseError("Syntax error: unbalanced parentheses")
            text, token_start, token_end = tokens[pos]
            if text == b")":
                end = token_end
                pos += 1
                break
            if text == b"(":
                pos, child = self._parse_node(tokens, pos, tree)
            else:
                child = _add(tree, text.decode(), False, (), token_start, token_end)
                pos += 1
            children.append(child)

        return pos, _add(tree, kind, True, children, start, end)


def _add(tree: SyntaxTree, kind, named, children, start, end) -> int:
    return tree.add(
        kind,
        named=named,
        children=children,
        start_byte=start,
        end_byte=end,
        start_line=tree.source.count(b"\n", 0, start),
        end_line=tree.source.count(b"\n", 0, end),
    )


FUNC_SOURCE = """\
(source_file
(function_declaration (identifier) (parameter_list) (block { (return_statement (identifier)) })))
"""

TWO_FUNCS_SOURCE = """\
(source_file
(function_declaration (identifier) (parameter_list (type_identifier Shape)) (block))
(type_declaration (type_identifier Shape)))
"""


@pytest.fixture
def grammar():
    return SexpGrammar()


@pytest.fixture
def vocabulary():
    return Vocabulary(tuple(SEXP_KINDS) + ("type_identifier_Shape",))


@pytest.fixture
def engine(grammar, vocabulary):
    return FingerprintEngine(grammar=grammar, vocabulary=vocabulary)


@pytest.fixture
def store(tmp_path, vocabulary):
    store = DeclarationStore(tmp_path / "declarations.db")
    store.create_schema(len(vocabulary), vocabulary.digest)
    yield store
    store.close()


@pytest.fixture
def sexp_repo(tmp_path):
    """Repository with four parseable files and one broken one."""
    repo = tmp_path / "repo"
    (repo / "pkg").mkdir(parents=True)
    (repo / "a.sx").write_text(FUNC_SOURCE)
    (repo / "b.sx").write_text(TWO_FUNCS_SOURCE)
    (repo / "pkg" / "c.sx").write_text(FUNC_SOURCE)
    (repo / "pkg" / "d.sx").write_text(TWO_FUNCS_SOURCE)
    (repo / "pkg" / "broken.sx").write_text("(source_file (function_declaration")
    (repo / "README.md").write_text("not source")
    return repo
