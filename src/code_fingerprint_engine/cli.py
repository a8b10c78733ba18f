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
CLI entry point for code-fingerprint-engine.

Usage:
    cfe ingest-file <source_file>
    cfe ingest-repo <repo_location>
    cfe ingest-repos <repo_url_file> --repos-base-dir <dir>
    cfe search-by-embedding <source_file> [-n 3]
    cfe fetch-repos <repo_url_file> <dest_dir>
    cfe --help
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import logging
import os
import sys
import threading

import click

from . import __version__
from .config import load_config, merge_config_with_cli
from .errors import ParseError, StorageError
from .fetcher import DEFAULT_CLONE_WORKERS, fetch_repos, read_repo_urls
from .fingerprinter import FileFingerprint, FingerprintEngine
from .ingest import DEFAULT_REPO_WORKERS, ingest_files, ingest_repo, ingest_repos, search_fingerprint
from .languages import DEFAULT_LANGUAGE, get_grammar
from .reporter import (
    OutputFormat,
    format_annotated_tree,
    format_batch_summary,
    format_ingest_summary,
    format_similarity_table,
    report_search_results,
)
from .similarity import METRICS
from .store import DeclarationStore, get_store_path
from .vocabulary import load_vocabulary, write_vocabulary


# Exit codes
EXIT_OK = 0
EXIT_FAILED = 1

_echo_lock = threading.Lock()


@dataclass
class Settings:
    """Options shared by every command, after merging the config file."""

    config: dict = field(default_factory=dict)
    db: Optional[str] = None
    vocabulary: Optional[str] = None
    language: str = DEFAULT_LANGUAGE
    metric: str = "cosine"
    allow_syntax_errors: bool = False
    verbose: bool = False
    quiet: bool = False

    def option(self, cli_value, key: str, default):
        return merge_config_with_cli(self.config, cli_value, key, default)


def print_progress(current: int, total: int, message: str, width: int = 30):
    """Print a progress bar with message."""
    if total == 0:
        pct = 100
    else:
        pct = int(current / total * 100)
    filled = int(width * current / max(total, 1))
    bar = "=" * filled + ">" + " " * (width - filled - 1) if filled < width else "=" * width
    # Use \r to overwrite line, \033[K to clear to end of line
    click.echo(f"\r   [{bar}] {current}/{total} {message} ({pct}%)\033[K", nl=False, err=True)
    if current >= total:
        click.echo(err=True)  # newline when complete


def _progress(settings: Settings):
    return None if settings.quiet else print_progress


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_engine(settings: Settings) -> FingerprintEngine:
    """Load grammar and vocabulary, exiting with a message on failure."""
    try:
        vocabulary = load_vocabulary(Path(settings.vocabulary) if settings.vocabulary else None)
    except (OSError, ValueError) as e:
        click.echo(f"❌ Cannot load vocabulary: {e}", err=True)
        sys.exit(EXIT_FAILED)

    try:
        grammar = get_grammar(settings.language, allow_syntax_errors=settings.allow_syntax_errors)
    except ValueError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(EXIT_FAILED)

    return FingerprintEngine(grammar=grammar, vocabulary=vocabulary)


def _open_store(settings: Settings, engine: FingerprintEngine) -> DeclarationStore:
    """Open the store and make sure its schema matches the vocabulary."""
    db_path = Path(settings.db) if settings.db else get_store_path(Path.cwd())
    try:
        store = DeclarationStore(db_path, metric=settings.metric)
        store.create_schema(engine.dimension, engine.vocabulary.digest)
    except StorageError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(EXIT_FAILED)

    if settings.verbose:
        click.echo(f"💾 Store: {db_path} ({engine.dimension} dimensions, {settings.metric})")
    return store


def _diagnostics_hook(settings: Settings):
    """Per-file verbose output: annotated tree and similarity table."""
    if not settings.verbose:
        return None

    def _show(fingerprint: FileFingerprint):
        with _echo_lock:
            click.echo(f"\n🌳 {fingerprint.source_file}")
            click.echo(format_annotated_tree(fingerprint))
            table = format_similarity_table(fingerprint)
            if table:
                click.echo(table)

    return _show


@click.group()
@click.option(
    "--db",
    type=click.Path(dir_okay=False),
    default=None,
    help="SQLite store path (default: .cfe_cache/declarations.db)"
)
@click.option(
    "--vocabulary",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Node-kind vocabulary file, one label per line (default: bundled Go list)"
)
@click.option(
    "-l", "--language",
    type=str,
    default=None,
    help="Grammar to parse with (default: go)"
)
@click.option(
    "--metric",
    type=click.Choice(METRICS),
    default=None,
    help="Nearest-neighbour distance: cosine or l2 (default: cosine)"
)
@click.option(
    "--allow-syntax-errors",
    is_flag=True,
    help="Fingerprint files with syntax errors instead of reporting them"
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Show annotated trees, similarity tables and debug logs"
)
@click.option(
    "-q", "--quiet",
    is_flag=True,
    help="Suppress progress bars"
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    db: Optional[str],
    vocabulary: Optional[str],
    language: Optional[str],
    metric: Optional[str],
    allow_syntax_errors: bool,
    verbose: bool,
    quiet: bool,
):
    """
    Fingerprint code declarations and find structurally similar ones.

    Examples:

      # Fingerprint every Go file of a checkout
      cfe ingest-repo ./myrepo

      # Clone, then ingest, a list of repositories
      cfe fetch-repos repos.txt /tmp/repos
      cfe ingest-repos repos.txt --repos-base-dir /tmp/repos

      # Find the 3 closest stored declarations for each declaration in a file
      cfe search-by-embedding ./handler.go -n 3
    """
    config = load_config(Path.cwd())

    settings = Settings(config=config, quiet=quiet)
    settings.db = settings.option(db, "db", None)
    settings.vocabulary = settings.option(vocabulary, "vocabulary", None)
    settings.language = settings.option(language, "language", DEFAULT_LANGUAGE)
    settings.metric = settings.option(metric, "metric", "cosine")
    # Flags only switch these on; the config file may enable them too
    settings.allow_syntax_errors = allow_syntax_errors or bool(config.get("allow_syntax_errors", False))
    settings.verbose = verbose or bool(config.get("verbose", False))

    if settings.metric not in METRICS:
        raise click.BadParameter(f"metric must be one of {', '.join(METRICS)}", param_hint="metric")

    _configure_logging(settings.verbose)

    if settings.verbose and config:
        click.echo("📝 Loaded config from .cferc/.cfe.toml")

    ctx.obj = settings


@main.command("ingest-file")
@click.argument("source_file", type=click.Path(dir_okay=False))
@click.option(
    "--replace",
    is_flag=True,
    help="Delete the file's previously stored declarations first"
)
@click.pass_obj
def ingest_file_command(settings: Settings, source_file: str, replace: bool):
    """Fingerprint one source file and store its declarations."""
    engine = _build_engine(settings)
    store = _open_store(settings, engine)

    click.echo(f"📄 Ingesting {source_file}...")
    with store:
        report = ingest_files(
            [source_file],
            engine,
            store,
            max_workers=1,
            replace=replace,
            on_fingerprint=_diagnostics_hook(settings),
        )

    _finish(format_ingest_summary(report), report.ok)


@main.command("ingest-repo")
@click.argument("repo_location", type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.option(
    "--file-workers",
    type=int,
    default=None,
    help="Files fingerprinted in parallel (default: CPU count)"
)
@click.option(
    "-e", "--exclude",
    multiple=True,
    help="Glob patterns to exclude (repeatable)"
)
@click.option(
    "--replace",
    is_flag=True,
    help="Delete each file's previously stored declarations first"
)
@click.pass_obj
def ingest_repo_command(
    settings: Settings,
    repo_location: str,
    file_workers: Optional[int],
    exclude: tuple,
    replace: bool,
):
    """Fingerprint every source file of a local repository."""
    engine = _build_engine(settings)
    store = _open_store(settings, engine)
    file_workers = settings.option(file_workers, "file_workers", os.cpu_count())

    click.echo(f"📂 Ingesting repository {repo_location}...")
    cancel_event = threading.Event()
    with store:
        try:
            report = ingest_repo(
                repo_location,
                engine,
                store,
                max_workers=file_workers,
                exclude_patterns=_exclude_patterns(settings, exclude),
                replace=replace,
                cancel_event=cancel_event,
                on_progress=_progress(settings),
                on_fingerprint=_diagnostics_hook(settings),
            )
        except KeyboardInterrupt:
            _interrupted()

    _finish(format_ingest_summary(report), report.ok)


@main.command("ingest-repos")
@click.argument("repo_url_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--repos-base-dir",
    type=click.Path(file_okay=False),
    required=True,
    help="Directory the repositories were fetched into (<dir>/<org>/<name>)"
)
@click.option(
    "--repo-workers",
    type=int,
    default=None,
    help=f"Repositories ingested in parallel (default: {DEFAULT_REPO_WORKERS})"
)
@click.option(
    "--file-workers",
    type=int,
    default=None,
    help="Files fingerprinted in parallel per repository (default: CPU count)"
)
@click.option(
    "-e", "--exclude",
    multiple=True,
    help="Glob patterns to exclude (repeatable)"
)
@click.option(
    "--replace",
    is_flag=True,
    help="Delete each file's previously stored declarations first"
)
@click.pass_obj
def ingest_repos_command(
    settings: Settings,
    repo_url_file: str,
    repos_base_dir: str,
    repo_workers: Optional[int],
    file_workers: Optional[int],
    exclude: tuple,
    replace: bool,
):
    """Ingest a batch of previously fetched repositories."""
    try:
        repo_urls = read_repo_urls(Path(repo_url_file))
    except OSError as e:
        click.echo(f"❌ Cannot read {repo_url_file}: {e}", err=True)
        sys.exit(EXIT_FAILED)

    engine = _build_engine(settings)
    store = _open_store(settings, engine)
    repo_workers = settings.option(repo_workers, "repo_workers", DEFAULT_REPO_WORKERS)
    file_workers = settings.option(file_workers, "file_workers", os.cpu_count())

    click.echo(f"📚 Ingesting {len(repo_urls)} repositories from {repos_base_dir}...")
    cancel_event = threading.Event()
    with store:
        try:
            batch = ingest_repos(
                repo_urls,
                repos_base_dir,
                engine,
                store,
                repo_workers=repo_workers,
                file_workers=file_workers,
                exclude_patterns=_exclude_patterns(settings, exclude),
                replace=replace,
                cancel_event=cancel_event,
                on_progress=_progress(settings),
            )
        except KeyboardInterrupt:
            _interrupted()

    _finish(format_batch_summary(batch), batch.ok)


@main.command("search-by-embedding")
@click.argument("source_file", type=click.Path(dir_okay=False))
@click.option(
    "-n", "--num-results",
    type=int,
    default=None,
    help="Matches per declaration (default: 1)"
)
@click.option(
    "-f", "--format", "output_format",
    type=click.Choice([f.value for f in OutputFormat]),
    default="text",
    help="Output format (default: text)"
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write results to a file instead of stdout"
)
@click.pass_obj
def search_command(
    settings: Settings,
    source_file: str,
    num_results: Optional[int],
    output_format: str,
    output: Optional[str],
):
    """Find the nearest stored declarations for each declaration of a file."""
    engine = _build_engine(settings)
    store = _open_store(settings, engine)
    num_results = settings.option(num_results, "num_results", 1)

    with store:
        try:
            fingerprint = engine.fingerprint_file(source_file)
            if settings.verbose:
                _diagnostics_hook(settings)(fingerprint)
            results = search_fingerprint(fingerprint, engine, store, k=num_results)
        except (ParseError, StorageError) as e:
            click.echo(f"❌ {type(e).__name__}: {e}", err=True)
            sys.exit(EXIT_FAILED)

    text = report_search_results(results, OutputFormat(output_format))
    if output:
        Path(output).write_text(text)
        click.echo(f"✅ Results written to: {output}")
    else:
        click.echo(text)


@main.command("fetch-repos")
@click.argument("repo_url_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("dest_dir", type=click.Path(file_okay=False))
@click.option(
    "--clone-workers",
    type=int,
    default=None,
    help=f"Simultaneous clones (default: {DEFAULT_CLONE_WORKERS})"
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Seconds before a single clone is abandoned"
)
@click.pass_obj
def fetch_repos_command(
    settings: Settings,
    repo_url_file: str,
    dest_dir: str,
    clone_workers: Optional[int],
    timeout: Optional[float],
):
    """Clone repositories listed in a file into DEST_DIR/<org>/<name>."""
    try:
        repo_urls = read_repo_urls(Path(repo_url_file))
    except OSError as e:
        click.echo(f"❌ Error reading repo URLs from file: {e}", err=True)
        sys.exit(EXIT_FAILED)

    clone_workers = settings.option(clone_workers, "clone_workers", DEFAULT_CLONE_WORKERS)

    click.echo(f"🌐 Cloning {len(repo_urls)} repositories into {dest_dir}...")
    cancel_event = threading.Event()
    try:
        report = fetch_repos(
            repo_urls,
            Path(dest_dir),
            max_workers=clone_workers,
            cancel_event=cancel_event,
            timeout=timeout,
            on_progress=_progress(settings),
        )
    except KeyboardInterrupt:
        _interrupted()

    lines = [
        f"   Cloned: {len(report.cloned)}",
        f"   Already present: {len(report.skipped)}",
    ]
    if report.cancelled:
        lines.append(f"   Cancelled: {report.cancelled}")
    for error in report.failures:
        lines.append(f"   ❌ {error}")

    if not report.ok:
        lines.append("Some repositories failed to clone.")
    _finish(lines, report.ok)


@main.command("dump-vocabulary")
@click.argument("output", type=click.Path(dir_okay=False))
@click.pass_obj
def dump_vocabulary_command(settings: Settings, output: str):
    """Write a vocabulary for the grammar to OUTPUT, one term per line."""
    try:
        terms = get_grammar(settings.language).vocabulary_terms()
    except (ImportError, ValueError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(EXIT_FAILED)

    count = write_vocabulary(terms, Path(output))
    click.echo(f"✅ Wrote {count} terms to {output}")


@main.command("stats")
@click.pass_obj
def stats_command(settings: Settings):
    """Show what the store holds."""
    engine = _build_engine(settings)
    with _open_store(settings, engine) as store:
        stats = store.stats()

    click.echo(f"💾 {store.db_path}")
    click.echo(f"   Declarations: {stats['total_records']}")
    click.echo(f"   Files: {stats['total_files']}")
    click.echo(f"   Dimensions: {stats['dimension']}")
    click.echo(f"   Size: {stats['size_mb']} MB")


def _exclude_patterns(settings: Settings, exclude: tuple) -> List[str]:
    """CLI excludes, or the config file's list when none were given."""
    if exclude:
        return list(exclude)
    configured = settings.config.get("exclude")
    return list(configured) if isinstance(configured, list) else []


def _interrupted():
    click.echo("\n⚠️  Interrupted - in-flight files finished, remaining work skipped", err=True)
    sys.exit(EXIT_FAILED)


def _finish(lines: List[str], ok: bool):
    """Print a summary and exit non-zero if any unit of work failed."""
    for line in lines:
        click.echo(line, err=not ok and "❌" in line)

    if ok:
        click.echo("\n✅ Done.")
        sys.exit(EXIT_OK)

    click.echo("\n❌ Completed with failures.", err=True)
    sys.exit(EXIT_FAILED)


# Entry point alias for pyproject.toml
cli = main


if __name__ == "__main__":
    main()
