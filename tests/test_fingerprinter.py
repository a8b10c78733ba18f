"""Tests for declaration selection and the per-file pipeline."""

import pytest

from code_fingerprint_engine.errors import ParseError
from code_fingerprint_engine.selector import is_declaration, select_declarations
from code_fingerprint_engine.canonicalizer import canonicalize

from conftest import FUNC_SOURCE, TWO_FUNCS_SOURCE


def test_declaration_kinds():
    assert is_declaration("function_declaration")
    assert is_declaration("method_declaration")
    assert is_declaration("type_declaration")
    assert not is_declaration("block")


def test_declarations_in_traversal_order(grammar):
    tree = grammar.parse(TWO_FUNCS_SOURCE.encode())
    declarations = select_declarations(tree, canonicalize(tree))

    assert [d.kind for d in declarations] == ["function_declaration", "type_declaration"]
    assert declarations[0].node_id < declarations[1].node_id
    assert declarations[1].frequencies == {"type_declaration": 1, "type_identifier_Shape": 1}


def test_custom_declaration_kinds(grammar):
    tree = grammar.parse(FUNC_SOURCE.encode())
    declarations = select_declarations(tree, canonicalize(tree), {"block"})

    assert [d.kind for d in declarations] == ["block"]


def test_records_for_file(engine, tmp_path):
    path = tmp_path / "shapes.sx"
    path.write_text(TWO_FUNCS_SOURCE)

    records = engine.records_for_file(path)

    assert len(records) == 2
    func, typ = records
    assert func.source_file == str(path)
    assert func.canonical_string.startswith("function_declaration:identifier")
    assert func.raw_text.startswith("(function_declaration")
    assert func.start_line == 1
    assert typ.kind == "type_declaration"
    assert typ.location == f"{path}:3-3"
    assert all(r.embedding.shape == (engine.dimension,) for r in records)


def test_record_embedding_is_read_only(engine):
    record = engine.fingerprint_source(TWO_FUNCS_SOURCE.encode()).records(engine.vocabulary)[0]

    with pytest.raises(ValueError):
        record.embedding[0] = 5


def test_parse_error_names_file(engine, tmp_path):
    path = tmp_path / "broken.sx"
    path.write_text("(source_file (function_declaration")

    with pytest.raises(ParseError) as exc_info:
        engine.fingerprint_file(path)

    assert exc_info.value.path == str(path)
    assert str(path) in str(exc_info.value)


def test_unreadable_file_is_parse_error(engine, tmp_path):
    with pytest.raises(ParseError):
        engine.fingerprint_file(tmp_path / "missing.sx")
