"""Tests for the cfe command line."""

import json

import pytest
from click.testing import CliRunner

from code_fingerprint_engine.cli import main
from code_fingerprint_engine.languages import _GRAMMAR_REGISTRY, register_grammar

from conftest import SEXP_KINDS, SexpGrammar, TWO_FUNCS_SOURCE


class CountingGrammar(SexpGrammar):
    """Records every parse, to check how often a command reads a file."""

    parses = []

    def parse(self, source):
        CountingGrammar.parses.append(source)
        return super().parse(source)


class BuiltinsGrammar(SexpGrammar):
    builtin_types = ("int", "string")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Run from an empty directory with the s-expression grammar registered."""
    monkeypatch.chdir(tmp_path)
    register_grammar("sexp", SexpGrammar)

    vocab = tmp_path / "vocab.txt"
    vocab.write_text("\n".join(SEXP_KINDS + ["type_identifier_Shape"]) + "\n")

    yield [
        "--db", str(tmp_path / "cli.db"),
        "--vocabulary", str(vocab),
        "--language", "sexp",
        "-q",
    ]

    _GRAMMAR_REGISTRY.pop("sexp", None)


@pytest.mark.parametrize("args", [
    ["ingest-file"],
    ["ingest-repo"],
    ["ingest-repos", "repos.txt"],
    ["search-by-embedding"],
    ["fetch-repos"],
    ["bogus-command"],
])
def test_usage_errors(runner, tmp_path, monkeypatch, args):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "repos.txt").write_text("https://github.com/acme/shapes\n")

    result = runner.invoke(main, args)

    assert result.exit_code == 2


def test_ingest_file_then_search(runner, tmp_path, cli_env):
    source = tmp_path / "shapes.sx"
    source.write_text(TWO_FUNCS_SOURCE)

    result = runner.invoke(main, cli_env + ["ingest-file", str(source)])
    assert result.exit_code == 0, result.output
    assert "Declarations stored: 2" in result.output

    result = runner.invoke(main, cli_env + ["search-by-embedding", str(source)])
    assert result.exit_code == 0, result.output
    assert result.output.startswith("Provided function:\n (function_declaration")
    assert "\n\n Embedding Match:\n" in result.output


def test_search_json(runner, tmp_path, cli_env):
    source = tmp_path / "shapes.sx"
    source.write_text(TWO_FUNCS_SOURCE)
    runner.invoke(main, cli_env + ["ingest-file", str(source)])

    result = runner.invoke(main, cli_env + ["search-by-embedding", str(source), "-n", "2", "--format", "json"])

    data = json.loads(result.output)
    assert [len(entry["matches"]) for entry in data] == [2, 2]
    assert data[1]["query"]["kind"] == "type_declaration"


def test_ingest_repo_reports_failures(runner, sexp_repo, cli_env):
    result = runner.invoke(main, cli_env + ["ingest-repo", str(sexp_repo)])

    assert result.exit_code == 1
    assert "Files ingested: 4/5" in result.output
    assert "ParseError" in result.output


def test_ingest_missing_file_fails(runner, tmp_path, cli_env):
    result = runner.invoke(main, cli_env + ["ingest-file", str(tmp_path / "missing.sx")])

    assert result.exit_code == 1


def test_ingest_repos_missing_checkout(runner, tmp_path, cli_env):
    urls = tmp_path / "repos.txt"
    urls.write_text("https://github.com/acme/shapes\n")
    base = tmp_path / "repos"
    base.mkdir()

    result = runner.invoke(main, cli_env + ["ingest-repos", str(urls), "--repos-base-dir", str(base)])

    assert result.exit_code == 1
    assert "FetchError" in result.output


def test_stats(runner, tmp_path, cli_env):
    source = tmp_path / "shapes.sx"
    source.write_text(TWO_FUNCS_SOURCE)
    runner.invoke(main, cli_env + ["ingest-file", str(source)])

    result = runner.invoke(main, cli_env + ["stats"])

    assert result.exit_code == 0
    assert "Declarations: 2" in result.output
    assert f"Dimensions: {len(SEXP_KINDS) + 1}" in result.output


def test_dump_vocabulary(runner, tmp_path, cli_env):
    output = tmp_path / "kinds.txt"

    result = runner.invoke(main, cli_env + ["dump-vocabulary", str(output)])

    assert result.exit_code == 0
    assert output.read_text().splitlines() == SEXP_KINDS + ["ERROR"]


def test_vocabulary_mismatch_is_reported(runner, tmp_path, cli_env):
    source = tmp_path / "shapes.sx"
    source.write_text(TWO_FUNCS_SOURCE)
    runner.invoke(main, cli_env + ["ingest-file", str(source)])

    other = tmp_path / "other.txt"
    other.write_text("block\nidentifier\n")
    args = list(cli_env)
    args[args.index("--vocabulary") + 1] = str(other)

    result = runner.invoke(main, args + ["stats"])

    assert result.exit_code == 1


def test_invalid_metric_in_config_is_usage_error(runner, tmp_path, cli_env):
    (tmp_path / ".cfe.toml").write_text('[cfe]\nmetric = "manhattan"\n')

    result = runner.invoke(main, cli_env + ["stats"])

    assert result.exit_code == 2


def test_dump_vocabulary_includes_builtin_types(runner, tmp_path, cli_env):
    register_grammar("sexp", BuiltinsGrammar)
    output = tmp_path / "kinds.txt"

    result = runner.invoke(main, cli_env + ["dump-vocabulary", str(output)])

    assert result.exit_code == 0
    terms = output.read_text().splitlines()
    assert terms == SEXP_KINDS + ["ERROR", "type_identifier_int", "type_identifier_string"]
    assert "type_identifier" not in terms


def test_verbose_search_parses_once(runner, tmp_path, cli_env):
    source = tmp_path / "shapes.sx"
    source.write_text(TWO_FUNCS_SOURCE)
    runner.invoke(main, cli_env + ["ingest-file", str(source)])

    register_grammar("sexp", CountingGrammar)
    CountingGrammar.parses.clear()

    result = runner.invoke(main, cli_env + ["-v", "search-by-embedding", str(source)])

    assert result.exit_code == 0, result.output
    assert len(CountingGrammar.parses) == 1
    assert "Provided function:" in result.output
