"""Tests against the real tree-sitter Go grammar."""

import pytest

pytest.importorskip("tree_sitter_go")

from code_fingerprint_engine.errors import ParseError
from code_fingerprint_engine.fingerprinter import FingerprintEngine
from code_fingerprint_engine.languages import get_grammar
from code_fingerprint_engine.vocabulary import load_vocabulary


SHAPES = b"""package shapes

type Shape interface {
	Area() float64
}

type Square struct {
	side float64
}

func (s Square) Area() float64 {
	return s.side * s.side
}

func Total(shapes []Shape) float64 {
	total := 0.0
	for _, s := range shapes {
		total += s.Area()
	}
	return total
}
"""


@pytest.fixture(scope="module")
def go_engine():
    return FingerprintEngine(grammar=get_grammar("go"), vocabulary=load_vocabulary())


def test_declarations_in_source_order(go_engine):
    fingerprint = go_engine.fingerprint_source(SHAPES, "shapes.go")

    assert [d.kind for d in fingerprint.declarations] == [
        "type_declaration",
        "type_declaration",
        "method_declaration",
        "function_declaration",
    ]


def test_type_names_in_canonical_string(go_engine):
    records = go_engine.fingerprint_source(SHAPES, "shapes.go").records(go_engine.vocabulary)
    method = records[2]

    assert method.canonical_string.startswith("method_declaration:parameter_list:")
    assert "type_identifier_Square" in method.canonical_string
    assert "type_identifier_float64" in method.canonical_string
    assert method.raw_text.startswith("func (s Square) Area()")
    assert method.start_line == 10
    assert method.embedding[go_engine.vocabulary.position("type_identifier_float64")] == 1


def test_syntax_error_is_parse_error(go_engine):
    with pytest.raises(ParseError):
        go_engine.fingerprint_source(b"package main\n\nfunc broken( {\n", "broken.go")


def test_syntax_errors_allowed():
    engine = FingerprintEngine(
        grammar=get_grammar("go", allow_syntax_errors=True),
        vocabulary=load_vocabulary(),
    )

    fingerprint = engine.fingerprint_source(b"package main\n\nfunc broken( {\n", "broken.go")

    assert fingerprint.tree.has_error


def test_empty_file(go_engine):
    fingerprint = go_engine.fingerprint_source(b"", "empty.go")

    assert fingerprint.canonical[fingerprint.tree.root] == "source_file"
    assert fingerprint.declarations == []


def test_node_kinds_cover_packaged_vocabulary():
    kinds = set(get_grammar("go").node_kinds())

    assert "function_declaration" in kinds
    assert "type_identifier" in kinds


def test_vocabulary_terms_cover_packaged_extras():
    terms = get_grammar("go").vocabulary_terms()
    packaged = load_vocabulary()

    extras = [t for t in packaged if t.startswith("type_identifier_") or t == "ERROR"]
    assert extras
    assert all(term in terms for term in extras)
    assert "type_identifier" not in terms
