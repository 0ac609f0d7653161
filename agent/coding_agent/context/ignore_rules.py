"""
.gitignore-style exclusion rules shared by the file-tree builder and the
listing/search tools.
"""

from __future__ import annotations

import logging
import os

import pathspec

logger = logging.getLogger(__name__)

IGNORE_FILENAME = ".gitignore"

DEFAULT_PATTERNS = (
    ".git/",
    ".hg/",
    ".svn/",
    "node_modules/",
    "__pycache__/",
    ".venv/",
    ".mypy_cache/",
    ".pytest_cache/",
    "*.pyc",
    "*.log",
    "*.tmp",
    "*.temp",
    ".DS_Store",
    "Thumbs.db",
)


def _ancestor_ignore_files(start_dir: str) -> list[str]:
    """Ignore files from the filesystem root down to ``start_dir``."""
    found = []
    current = os.path.abspath(start_dir)
    while True:
        candidate = os.path.join(current, IGNORE_FILENAME)
        if os.path.isfile(candidate):
            found.append(candidate)
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    found.reverse()
    return found


def _read_patterns(path: str) -> list[str]:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.read().splitlines()
    except OSError as e:
        logger.warning("Could not read %s: %s", path, e)
        return []
    return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]


class IgnoreRules:
    """Accumulated ignore patterns; later patterns override earlier ones."""

    def __init__(self, patterns=()):
        self.patterns = list(patterns)
        self._spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)

    @classmethod
    def for_directory(cls, start_dir: str, include_defaults: bool = True) -> "IgnoreRules":
        """Defaults first, then every ancestor .gitignore, outermost first."""
        patterns = list(DEFAULT_PATTERNS) if include_defaults else []
        for ignore_file in _ancestor_ignore_files(start_dir):
            patterns.extend(_read_patterns(ignore_file))
        return cls(patterns)

    @classmethod
    def empty(cls) -> "IgnoreRules":
        return cls(())

    def ignores(self, relative_path: str, is_dir: bool = False) -> bool:
        rel = relative_path.replace(os.sep, "/").strip("/")
        if not rel:
            return False
        if self._spec.match_file(rel):
            return True
        return is_dir and self._spec.match_file(rel + "/")
