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
Code Fingerprint Engine - Structural fingerprints for code similarity search.

Reduces every declaration of a source file to a term-frequency vector over
syntax node kinds, so declarations that are built the same way land close
together regardless of the names they use.

No network access except `git clone` in the fetch stage.
"""

__version__ = "0.1.0"

from .canonicalizer import canonicalize
from .vocabulary import Vocabulary, load_vocabulary
from .vectorizer import node_frequencies, vectorize
from .similarity import cosine
from .fingerprinter import FingerprintEngine, FileFingerprint
from .store import DeclarationStore
from .ingest import ingest_file, ingest_repo, ingest_repos, search_file, search_fingerprint
from .fetcher import fetch_repos
from .config import load_config, find_config_file

__all__ = [
    "__version__",
    "canonicalize",
    "Vocabulary",
    "load_vocabulary",
    "node_frequencies",
    "vectorize",
    "cosine",
    "FingerprintEngine",
    "FileFingerprint",
    "DeclarationStore",
    "ingest_file",
    "ingest_repo",
    "ingest_repos",
    "search_file",
    "search_fingerprint",
    "fetch_repos",
    "load_config",
    "find_config_file",
]
