"""
Bounded, ignore-aware snapshot of a project directory, rendered as one
relative path per line.
"""

from __future__ import annotations

import logging
import os

from .ignore_rules import IgnoreRules

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "... (truncated)"


def _sorted_entries(path: str) -> list[os.DirEntry]:
    with os.scandir(path) as it:
        entries = list(it)

    def key(entry: os.DirEntry):
        try:
            is_dir = entry.is_dir()
        except OSError:
            is_dir = False
        return (not is_dir, entry.name.casefold(), entry.name)

    return sorted(entries, key=key)


class _TreeWalk:
    def __init__(self, root: str, rules: IgnoreRules, max_depth: int | None, max_lines: int):
        self.root = root
        self.rules = rules
        self.max_depth = max_depth
        self.max_lines = max_lines
        self.lines: list[str] = []
        self.truncated = False

    def visit(self, current: str, depth: int, relative: str) -> None:
        if self.max_depth is not None and depth + 1 > self.max_depth:
            return
        try:
            entries = _sorted_entries(current)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", current, e)
            return

        for entry in entries:
            if self.truncated:
                return
            entry_rel = f"{relative}/{entry.name}" if relative else entry.name
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            if self.rules.ignores(entry_rel, is_dir=is_dir):
                continue

            if len(self.lines) >= self.max_lines:
                self.truncated = True
                return

            self.lines.append(entry_rel)
            if is_dir and not entry.is_symlink():
                self.visit(entry.path, depth + 1, entry_rel)


def build_tree(
    root_path: str,
    max_depth: int | None = None,
    max_lines: int = 500,
    rules: IgnoreRules | None = None,
) -> str:
    """Render the project tree under ``root_path``.

    Directories come before files, names compare case-insensitively. At most
    ``max_lines`` entries are written; if more would follow, a single
    truncation marker line is appended.

    Raises:
        FileNotFoundError: ``root_path`` does not exist.
    """
    if not os.path.exists(root_path):
        raise FileNotFoundError(f"Path does not exist: {root_path}")

    root = os.path.abspath(root_path)
    if not os.path.isdir(root):
        return os.path.basename(root)

    if rules is None:
        rules = IgnoreRules.for_directory(root)

    walk = _TreeWalk(root, rules, max_depth, max(0, max_lines))
    walk.visit(root, 0, "")

    lines = list(walk.lines)
    if walk.truncated:
        lines.append(TRUNCATION_MARKER)
    return "\n".join(lines)
