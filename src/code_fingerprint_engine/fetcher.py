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
Repository fetcher - clones repositories to <dest>/<org>/<name>.

Clones run in parallel under a fixed ceiling. A failed clone is
collected and reported; it never stops the rest of the batch.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple
import logging
import subprocess
import threading
import time

from .errors import FetchError


logger = logging.getLogger(__name__)

DEFAULT_CLONE_WORKERS = 16

# How often a running clone checks for cancellation (seconds)
_POLL_INTERVAL = 0.5


@dataclass
class FetchReport:
    """Outcome of a batch of clones."""

    cloned: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)   # Already present
    failures: List[FetchError] = field(default_factory=list)
    cancelled: int = 0

    @property
    def ok(self) -> bool:
        return not self.failures and self.cancelled == 0


def read_repo_urls(path: Path) -> List[str]:
    """
    Read repository URLs, one per line.

    Blank lines and lines starting with '#' are ignored.
    """
    urls = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                urls.append(line)
    return urls


def parse_repo_url(repo_url: str) -> Tuple[str, str]:
    """
    Split a repository URL into (org, name).

    Works for https URLs and scp-style git@host:org/name.git addresses.

    Raises:
        FetchError: If the URL has no org/name segments
    """
    trimmed = repo_url.strip().rstrip("/")
    if trimmed.endswith(".git"):
        trimmed = trimmed[:-len(".git")]

    parts = trimmed.replace(":", "/").split("/")
    if len(parts) < 2 or not parts[-1] or not parts[-2]:
        raise FetchError(f"invalid repo URL: {repo_url}", repo_url=repo_url)

    return parts[-2], parts[-1]


def repo_checkout_path(base_dir: Path, repo_url: str) -> Path:
    """Local checkout location of a repository URL."""
    org, name = parse_repo_url(repo_url)
    return Path(base_dir) / org / name


def clone_repo(
    repo_url: str,
    destination: Path,
    cancel_event: Optional[threading.Event] = None,
    timeout: Optional[float] = None,
) -> bool:
    """
    Clone a single repository with `git clone`.

    Args:
        repo_url: Repository URL
        destination: Target directory
        cancel_event: Set to abort the clone
        timeout: Seconds before giving up

    Returns:
        True if cloned, False if the destination already had content

    Raises:
        FetchError: If git fails, times out or the clone is cancelled
    """
    destination = Path(destination)
    if destination.is_dir() and any(destination.iterdir()):
        logger.info("Skipping %s, already present at %s", repo_url, destination)
        return False

    destination.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Cloning %s into %s...", repo_url, destination)

    try:
        process = subprocess.Popen(
            ["git", "clone", "--quiet", repo_url, str(destination)],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as e:
        raise FetchError(f"failed to run git for {repo_url}: {e}", repo_url=repo_url) from e

    deadline = time.monotonic() + timeout if timeout else None
    while True:
        try:
            output, _ = process.communicate(timeout=_POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            cancelled = cancel_event is not None and cancel_event.is_set()
            expired = deadline is not None and time.monotonic() >= deadline
            if cancelled or expired:
                process.kill()
                output, _ = process.communicate()
                reason = "cancelled" if cancelled else f"timed out after {timeout}s"
                raise FetchError(
                    f"clone of {repo_url} {reason}", repo_url=repo_url, output=output or ""
                )

    if process.returncode != 0:
        output = (output or "").strip()
        raise FetchError(
            f"failed to clone {repo_url}: git exited with {process.returncode}, output: {output}",
            repo_url=repo_url,
            output=output,
        )

    logger.info("Successfully cloned %s", repo_url)
    return True


def fetch_repos(
    repo_urls: List[str],
    destination_dir: Path,
    max_workers: int = DEFAULT_CLONE_WORKERS,
    cancel_event: Optional[threading.Event] = None,
    timeout: Optional[float] = None,
    on_progress: Optional[Callable[[int, int, str], None]] = None,
) -> FetchReport:
    """
    Clone many repositories in parallel.

    Args:
        repo_urls: Repository URLs
        destination_dir: Checkouts go to destination_dir/<org>/<name>
        max_workers: Maximum simultaneous clones
        cancel_event: Set to stop starting new clones and abort running ones
        timeout: Per-clone timeout in seconds
        on_progress: Optional callback(current, total, message)

    Returns:
        FetchReport listing cloned, skipped and failed repositories
    """
    destination_dir = Path(destination_dir)
    destination_dir.mkdir(parents=True, exist_ok=True)
    cancel_event = cancel_event or threading.Event()
    report = FetchReport()
    total = len(repo_urls)

    def _fetch_one(url: str) -> Optional[bool]:
        if cancel_event.is_set():
            return None
        return clone_repo(url, repo_checkout_path(destination_dir, url), cancel_event, timeout)

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {executor.submit(_fetch_one, url): url for url in repo_urls}

        try:
            for done, future in enumerate(as_completed(futures), start=1):
                url = futures[future]
                try:
                    cloned = future.result()
                except FetchError as e:
                    logger.warning("Error: %s", e)
                    report.failures.append(e)
                else:
                    if cloned is None:
                        report.cancelled += 1
                    elif cloned:
                        report.cloned.append(url)
                    else:
                        report.skipped.append(url)

                if on_progress:
                    on_progress(done, total, "repositories")
        except KeyboardInterrupt:
            cancel_event.set()
            raise

    return report
