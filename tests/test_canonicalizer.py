"""Tests for the syntax arena and subtree canonicalizer."""

import pytest

from code_fingerprint_engine.canonicalizer import canonicalize, node_label
from code_fingerprint_engine.syntax import SyntaxTree
from code_fingerprint_engine.vectorizer import vectorize
from code_fingerprint_engine.vocabulary import Vocabulary

from conftest import FUNC_SOURCE, TWO_FUNCS_SOURCE


def _foo_function():
    tree = SyntaxTree(b"Foo")
    type_id = tree.add("type_identifier", start_byte=0, end_byte=3)
    tree.add("function_declaration", children=(type_id,), start_byte=0, end_byte=3)
    return tree


def test_type_identifier_embeds_name():
    tree = _foo_function()
    canonical = canonicalize(tree)

    assert canonical[tree.root] == "function_declaration:type_identifier_Foo"

    vocab = Vocabulary(("identifier", "type_identifier_Foo", "function_declaration"))
    assert vectorize(canonical[tree.root], vocab).tolist() == [0, 1, 1]


def test_leaf_is_bare_label():
    tree = SyntaxTree(b"x")
    tree.add("identifier", start_byte=0, end_byte=1)

    assert canonicalize(tree) == ["identifier"]


def test_empty_source_is_root_label(grammar):
    tree = grammar.parse(b"(source_file)")

    assert canonicalize(tree) == ["source_file"]


def test_unnamed_children_skipped(grammar):
    tree = grammar.parse(FUNC_SOURCE.encode())
    canonical = canonicalize(tree)

    func = tree.kinds.index("function_declaration")
    assert canonical[func] == (
        "function_declaration:identifier:parameter_list:block:return_statement:identifier"
    )
    assert "{" not in canonical[tree.root]


def test_identifiers_are_name_blind():
    first = SyntaxTree(b"foo")
    first.add("identifier", start_byte=0, end_byte=3)
    second = SyntaxTree(b"bar")
    second.add("identifier", start_byte=0, end_byte=3)

    assert canonicalize(first) == canonicalize(second)
    assert node_label(first, 0) == "identifier"


def test_deterministic(grammar, vocabulary):
    source = TWO_FUNCS_SOURCE.encode()
    first = canonicalize(grammar.parse(source))
    second = canonicalize(grammar.parse(source))

    assert first == second
    assert vectorize(first[-1], vocabulary).tolist() == vectorize(second[-1], vocabulary).tolist()


def test_add_rejects_forward_child():
    tree = SyntaxTree()
    tree.add("identifier")

    with pytest.raises(ValueError):
        tree.add("block", children=(1,))


def test_preorder_is_source_order(grammar):
    tree = grammar.parse(TWO_FUNCS_SOURCE.encode())
    kinds = [tree.kinds[i] for i, _ in tree.preorder() if tree.named[i]]

    assert kinds[:3] == ["source_file", "function_declaration", "identifier"]
    assert kinds[-2:] == ["type_declaration", "type_identifier"]


def test_empty_tree_has_no_root():
    with pytest.raises(IndexError):
        SyntaxTree().root
