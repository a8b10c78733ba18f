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
Source discovery - finds the files of a repository checkout to fingerprint.
"""

from pathlib import Path
from typing import Iterable, List, Optional
import fnmatch
import logging
import os


logger = logging.getLogger(__name__)

# Default patterns to always exclude
DEFAULT_EXCLUDES = [
    "*.git/*",
    "*node_modules/*",
    "*vendor/*",  # Go module vendoring
    "*testdata/*",  # Go test fixtures, often deliberately malformed
    "*.cache/*",
    "*.cfe_cache/*",
]


def find_source_files(
    root_path: Path,
    extensions: Iterable[str],
    exclude_patterns: Optional[List[str]] = None,
) -> List[Path]:
    """
    Find all source files under a directory.

    Unreadable directories are logged and skipped rather than aborting
    the walk.

    Args:
        root_path: Root directory to scan
        extensions: File suffixes to include (e.g. {".go"})
        exclude_patterns: Glob patterns to exclude (added to defaults)

    Returns:
        Matching files, sorted for a stable processing order
    """
    all_excludes = DEFAULT_EXCLUDES + (exclude_patterns or [])
    extensions = {ext.lower() for ext in extensions}
    root_path = Path(root_path)
    source_files = []

    def _on_error(error: OSError):
        logger.warning("Error accessing path %s: %s", error.filename, error.strerror or error)

    for dirpath, dirnames, filenames in os.walk(root_path, onerror=_on_error):
        # Deterministic walk order
        dirnames.sort()

        for name in sorted(filenames):
            file_path = Path(dirpath) / name

            # Check extension
            if file_path.suffix.lower() not in extensions:
                continue

            # Make relative for pattern matching
            rel_path = str(file_path.relative_to(root_path))

            # Excludes apply to the path relative to root_path
            if any(fnmatch.fnmatch(rel_path, pat) for pat in all_excludes):
                continue

            source_files.append(file_path)

    return source_files
