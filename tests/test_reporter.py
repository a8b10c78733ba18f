"""Tests for result and diagnostic formatting."""

import json

import numpy as np

from code_fingerprint_engine.ingest import FileFailure, IngestReport
from code_fingerprint_engine.errors import ParseError
from code_fingerprint_engine.models import DeclarationRecord, SearchMatch, SearchResult
from code_fingerprint_engine.reporter import (
    OutputFormat,
    format_annotated_tree,
    format_ingest_summary,
    format_similarity_table,
    report_search_results,
)

from conftest import TWO_FUNCS_SOURCE


def _record(text, source_file="a.go"):
    return DeclarationRecord(
        source_file=source_file,
        start_line=0,
        end_line=2,
        canonical_string="function_declaration",
        raw_text=text,
        embedding=np.zeros(3),
        kind="function_declaration",
    )


def _results():
    return [SearchResult(
        query=_record("func a() {}"),
        matches=[SearchMatch(_record("func b() {}", "b.go"), 0.0), SearchMatch(_record("func c() {}", "c.go"), 0.5)],
    )]


def test_text_report():
    text = report_search_results(_results(), OutputFormat.TEXT)

    assert text == (
        "Provided function:\n func a() {}"
        "\n\n Embedding Match:\nfunc b() {}"
        "\n\n Embedding Match:\nfunc c() {}"
    )


def test_markdown_report():
    text = report_search_results(_results(), OutputFormat.MARKDOWN)

    assert "`a.go:1-3`" in text
    assert "### Match 2: `c.go:1-3` (distance 0.5000)" in text


def test_json_report():
    data = json.loads(report_search_results(_results(), OutputFormat.JSON))

    assert data[0]["query"]["raw_text"] == "func a() {}"
    assert [m["distance"] for m in data[0]["matches"]] == [0.0, 0.5]


def test_annotated_tree_and_similarity_table(engine):
    fingerprint = engine.fingerprint_source(TWO_FUNCS_SOURCE.encode(), "shapes.sx")

    tree = format_annotated_tree(fingerprint).splitlines()
    assert tree[0] == "<source_file>"
    assert "  <function_declaration>:" in tree
    assert "type_declaration:type_identifier_Shape" in tree

    table = format_similarity_table(fingerprint).splitlines()
    func_id, type_id = (d.node_id for d in fingerprint.declarations)
    assert len(table) == 4
    assert table[0] == f"{func_id}:{func_id}\t1.000000"
    assert table[1].startswith(f"{func_id}:{type_id}\t")


def test_ingest_summary():
    report = IngestReport(files_ok=2, records=5, failures=[FileFailure("x.go", ParseError("bad", "x.go"))])

    lines = format_ingest_summary(report)

    assert lines[0] == "   Files ingested: 2/3"
    assert lines[-1] == "   ❌ ParseError: x.go: bad"
