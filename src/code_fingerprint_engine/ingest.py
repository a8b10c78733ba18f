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
Ingestion orchestrator.

Fingerprints files and writes their declarations to the store. Files of
a repository run on one thread pool, repositories of a batch on another,
each with its own ceiling. Failures stay local to the file or repository
that caused them; every batch runs to completion and reports what failed.

Cancellation is checked between files: a file already being parsed
finishes, files not yet started are skipped.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union
import logging
import os
import threading

from .errors import FetchError, FingerprintError, ParseError, StorageError, VectorizeError
from .fetcher import repo_checkout_path
from .fingerprinter import FingerprintEngine, FileFingerprint
from .indexer import find_source_files
from .models import SearchResult
from .store import DeclarationStore


logger = logging.getLogger(__name__)

DEFAULT_REPO_WORKERS = 16

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class FileFailure:
    """A file whose declarations could not be ingested."""

    path: str
    error: FingerprintError

    @property
    def kind(self) -> str:
        return type(self.error).__name__


@dataclass
class IngestReport:
    """Outcome of ingesting a set of files."""

    files_ok: int = 0
    records: int = 0
    failures: List[FileFailure] = field(default_factory=list)
    cancelled: int = 0

    @property
    def ok(self) -> bool:
        return not self.failures and self.cancelled == 0

    @property
    def files_total(self) -> int:
        return self.files_ok + len(self.failures) + self.cancelled


@dataclass
class BatchReport:
    """Outcome of ingesting many repositories."""

    repos: Dict[str, IngestReport] = field(default_factory=dict)
    failures: List[FingerprintError] = field(default_factory=list)  # Repository-level
    cancelled: int = 0

    @property
    def ok(self) -> bool:
        return not self.failures and self.cancelled == 0 and all(r.ok for r in self.repos.values())

    @property
    def records(self) -> int:
        return sum(r.records for r in self.repos.values())

    @property
    def file_failures(self) -> List[FileFailure]:
        return [f for r in self.repos.values() for f in r.failures]


def ingest_file(
    path: Union[str, Path],
    engine: FingerprintEngine,
    store: DeclarationStore,
    replace: bool = False,
    on_fingerprint: Optional[Callable[[FileFingerprint], None]] = None,
) -> int:
    """
    Fingerprint one file and store its declarations.

    Args:
        path: Source file
        engine: Grammar and vocabulary
        store: Destination store
        replace: Delete the file's previously stored records first
        on_fingerprint: Optional hook called with the fingerprint before storing

    Returns:
        Number of records written

    Raises:
        ParseError: If the file cannot be read or parsed
        StorageError: If the records cannot be written
    """
    fingerprint = engine.fingerprint_file(path)
    if on_fingerprint:
        on_fingerprint(fingerprint)

    records = fingerprint.records(engine.vocabulary)
    replace_file = fingerprint.source_file if replace else None
    store.insert_many(records, replace_file=replace_file)
    return len(records)


def ingest_files(
    paths: List[Union[str, Path]],
    engine: FingerprintEngine,
    store: DeclarationStore,
    max_workers: Optional[int] = None,
    replace: bool = False,
    cancel_event: Optional[threading.Event] = None,
    on_progress: Optional[ProgressCallback] = None,
    on_fingerprint: Optional[Callable[[FileFingerprint], None]] = None,
) -> IngestReport:
    """
    Ingest files in parallel, best effort.

    Args:
        paths: Source files
        engine: Grammar and vocabulary
        store: Destination store
        max_workers: Simultaneous file workers (default: CPU count)
        replace: Delete each file's previously stored records first
        cancel_event: Set to skip files that have not started yet
        on_progress: Optional callback(current, total, message)
        on_fingerprint: Optional hook called with each file's fingerprint

    Returns:
        IngestReport with successes, failures and cancelled files
    """
    report = IngestReport()
    if not paths:
        return report

    cancel_event = cancel_event or threading.Event()
    total = len(paths)

    def _process(path) -> Optional[int]:
        if cancel_event.is_set():
            return None
        return ingest_file(path, engine, store, replace, on_fingerprint)

    with ThreadPoolExecutor(max_workers=max_workers or os.cpu_count()) as executor:
        futures = {executor.submit(_process, path): str(path) for path in paths}

        try:
            for done, future in enumerate(as_completed(futures), start=1):
                path = futures[future]
                _collect(report, path, future)

                if on_progress:
                    on_progress(done, total, "files")
        except KeyboardInterrupt:
            cancel_event.set()
            raise

    return report


def _collect(report: IngestReport, path: str, future) -> None:
    """Fold one file's outcome into the report."""
    try:
        written = future.result()
    except (ParseError, StorageError) as e:
        logger.warning("Failed to ingest %s: %s", path, e)
        report.failures.append(FileFailure(path=path, error=e))
        return
    except Exception as e:
        # Anything else is a bug in the pipeline, not a property of the file
        logger.exception("Unexpected error fingerprinting %s", path)
        error = VectorizeError(f"{type(e).__name__}: {e}")
        error.__cause__ = e
        report.failures.append(FileFailure(path=path, error=error))
        return

    if written is None:
        report.cancelled += 1
    else:
        report.files_ok += 1
        report.records += written


def ingest_repo(
    repo_location: Union[str, Path],
    engine: FingerprintEngine,
    store: DeclarationStore,
    max_workers: Optional[int] = None,
    exclude_patterns: Optional[List[str]] = None,
    replace: bool = False,
    cancel_event: Optional[threading.Event] = None,
    on_progress: Optional[ProgressCallback] = None,
    on_fingerprint: Optional[Callable[[FileFingerprint], None]] = None,
) -> IngestReport:
    """
    Ingest every source file of a local checkout.

    Raises:
        FileNotFoundError: If repo_location is not a directory
    """
    repo_location = Path(repo_location)
    if not repo_location.is_dir():
        raise FileNotFoundError(f"Repository not found: {repo_location}")

    files = find_source_files(repo_location, engine.grammar.extensions, exclude_patterns)
    logger.debug("Found %d source files in %s", len(files), repo_location)

    return ingest_files(
        files,
        engine,
        store,
        max_workers=max_workers,
        replace=replace,
        cancel_event=cancel_event,
        on_progress=on_progress,
        on_fingerprint=on_fingerprint,
    )


def ingest_repos(
    repo_urls: List[str],
    repos_base_dir: Union[str, Path],
    engine: FingerprintEngine,
    store: DeclarationStore,
    repo_workers: int = DEFAULT_REPO_WORKERS,
    file_workers: Optional[int] = None,
    exclude_patterns: Optional[List[str]] = None,
    replace: bool = False,
    cancel_event: Optional[threading.Event] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> BatchReport:
    """
    Ingest previously fetched repositories in parallel.

    Each URL maps to repos_base_dir/<org>/<name>. A repository that is
    missing or unreadable locally is reported as a FetchError; the others
    continue. Any other exception is a pipeline bug, reported as VectorizeError.

    Args:
        repo_urls: Repository URLs
        repos_base_dir: Directory the fetcher cloned into
        engine: Grammar and vocabulary
        store: Destination store
        repo_workers: Simultaneous repositories
        file_workers: Simultaneous files within each repository
        exclude_patterns: Glob patterns to skip
        replace: Delete each file's previously stored records first
        cancel_event: Set to skip repositories and files not yet started
        on_progress: Optional callback(current, total, message), per repository

    Returns:
        BatchReport with one IngestReport per repository reached
    """
    batch = BatchReport()
    cancel_event = cancel_event or threading.Event()
    total = len(repo_urls)

    def _process(url: str) -> Optional[IngestReport]:
        if cancel_event.is_set():
            return None

        location = repo_checkout_path(Path(repos_base_dir), url)
        if not location.is_dir():
            raise FetchError(f"repository not fetched: {location}", repo_url=url)

        logger.info("Ingesting repo: %s", location)
        return ingest_repo(
            location,
            engine,
            store,
            max_workers=file_workers,
            exclude_patterns=exclude_patterns,
            replace=replace,
            cancel_event=cancel_event,
        )

    with ThreadPoolExecutor(max_workers=max(1, repo_workers)) as executor:
        futures = {executor.submit(_process, url): url for url in repo_urls}

        try:
            for done, future in enumerate(as_completed(futures), start=1):
                url = futures[future]
                try:
                    report = future.result()
                except FetchError as e:
                    logger.warning("Unable to ingest repo %s: %s", url, e)
                    batch.failures.append(e)
                except OSError as e:
                    logger.warning("Checkout of %s is unusable: %s", url, e)
                    error = FetchError(f"checkout unusable: {e}", repo_url=url)
                    error.__cause__ = e
                    batch.failures.append(error)
                except Exception as e:
                    logger.exception("Unexpected error ingesting repo %s", url)
                    error = VectorizeError(f"{url}: {type(e).__name__}: {e}")
                    error.__cause__ = e
                    batch.failures.append(error)
                else:
                    if report is None:
                        batch.cancelled += 1
                    else:
                        batch.repos[url] = report
                        if not report.ok:
                            logger.warning(
                                "Repo %s: %d of %d files failed",
                                url, len(report.failures), report.files_total,
                            )

                if on_progress:
                    on_progress(done, total, "repositories")
        except KeyboardInterrupt:
            cancel_event.set()
            raise

    return batch


def search_file(
    path: Union[str, Path],
    engine: FingerprintEngine,
    store: DeclarationStore,
    k: int = 1,
) -> List[SearchResult]:
    """
    Find the nearest stored declarations for each declaration of a file.

    Returns:
        One SearchResult per declaration, in declaration order

    Raises:
        ParseError: If the file cannot be read or parsed
        StorageError: If the store cannot be queried
    """
    return search_fingerprint(engine.fingerprint_file(path), engine, store, k)


def search_fingerprint(
    fingerprint: FileFingerprint,
    engine: FingerprintEngine,
    store: DeclarationStore,
    k: int = 1,
) -> List[SearchResult]:
    """Like search_file, for a file that has already been fingerprinted."""
    return [
        SearchResult(query=record, matches=store.search(record.embedding, k))
        for record in fingerprint.records(engine.vocabulary)
    ]
