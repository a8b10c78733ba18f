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
Language grammars.

Each grammar turns source bytes into a syntax arena and names the node
kinds that count as declarations. Only Go is built in.
"""

from pathlib import Path
from typing import Optional

from .base import BaseGrammar


# Language registry - maps language name to grammar class
_GRAMMAR_REGISTRY: dict[str, type[BaseGrammar]] = {}

# Extension to language mapping
EXTENSION_MAP = {
    ".go": "go",
}

DEFAULT_LANGUAGE = "go"


def register_grammar(language: str, grammar_class: type[BaseGrammar]) -> None:
    """Register a grammar for a language."""
    _GRAMMAR_REGISTRY[language.lower()] = grammar_class


def get_grammar(language: str = DEFAULT_LANGUAGE, **options) -> BaseGrammar:
    """
    Get a grammar instance for the given language.

    Args:
        language: Language name
        **options: Passed to the grammar constructor
            (declaration_kinds, allow_syntax_errors)

    Raises:
        ValueError: If no grammar exists for the language
    """
    language = language.lower()

    if language in _GRAMMAR_REGISTRY:
        return _GRAMMAR_REGISTRY[language](**options)

    if language == "go":
        from .go import GoGrammar
        return GoGrammar(**options)

    raise ValueError(f"Unsupported language: {language}")


def detect_language(file_path: Path) -> Optional[str]:
    """Detect language from file extension."""
    return EXTENSION_MAP.get(Path(file_path).suffix.lower())
