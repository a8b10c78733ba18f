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
Error types for code-fingerprint-engine.

Every failure is scoped to the smallest unit of work it affects
(one repository, one file, one record) so that batch operations
can report it and move on.
"""

from pathlib import Path
from typing import Optional, Union


class FingerprintError(Exception):
    """Base class for all engine errors."""


class FetchError(FingerprintError):
    """A repository could not be cloned or is not available locally."""

    def __init__(self, message: str, repo_url: Optional[str] = None, output: str = ""):
        super().__init__(message)
        self.repo_url = repo_url
        self.output = output


class ParseError(FingerprintError):
    """A source file is unreadable or could not be parsed."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        if self.path is not None:
            return f"{self.path}: {message}"
        return message


class VectorizeError(FingerprintError):
    """An internal invariant of the fingerprinting pipeline was violated."""


class StorageError(FingerprintError):
    """The declaration store could not be opened, written or queried."""
