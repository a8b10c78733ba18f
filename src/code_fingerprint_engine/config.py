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
Configuration file support for CFE.

Looks for .cferc or .cfe.toml in current directory or its parents.
"""

from pathlib import Path
from typing import Optional, Dict, Any
import sys

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


CONFIG_NAMES = [".cferc", ".cfe.toml"]

# Keys understood in the [cfe] section
CONFIG_KEYS = {
    "db",
    "vocabulary",
    "language",
    "metric",
    "file_workers",
    "repo_workers",
    "clone_workers",
    "num_results",
    "exclude",
    "allow_syntax_errors",
    "verbose",
}


def find_config_file(start_path: Path) -> Optional[Path]:
    """
    Search for .cferc or .cfe.toml in start_path and parent directories.

    Args:
        start_path: Directory to start searching from

    Returns:
        Path to config file if found, None otherwise
    """
    current = Path(start_path).resolve()

    while True:
        for name in CONFIG_NAMES:
            config_path = current / name
            if config_path.is_file():
                return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(path: Path) -> Dict[str, Any]:
    """
    Load CFE configuration from .cferc or .cfe.toml.

    Returns an empty dict if no config file is found or it cannot be read.

    Args:
        path: Directory to start searching from

    Returns:
        Dictionary of known keys from the [cfe] section

    Example config file (.cferc or .cfe.toml):
        [cfe]
        db = ".cfe_cache/declarations.db"
        vocabulary = "node_types_go.txt"
        metric = "cosine"
        file_workers = 8
        repo_workers = 16
        clone_workers = 16
        num_results = 3
        exclude = ["**/testdata/**"]
        allow_syntax_errors = false
    """
    config_path = find_config_file(path)

    if config_path is None:
        return {}

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        # File unreadable or invalid TOML - return empty config
        return {}

    section = data.get("cfe", {})
    if not isinstance(section, dict):
        return {}

    config = {k: v for k, v in section.items() if k in CONFIG_KEYS}

    # Relative paths in the file are relative to the file
    for key in ("db", "vocabulary"):
        if isinstance(config.get(key), str):
            config[key] = str((config_path.parent / config[key]).resolve())

    return config


def merge_config_with_cli(
    config: dict,
    cli_value,
    config_key: str,
    default_value,
):
    """
    Merge config file value with CLI value.

    CLI options default to None; an explicit CLI value always wins,
    then the config file, then the built-in default.
    """
    if cli_value is not None:
        return cli_value
    return config.get(config_key, default_value)
