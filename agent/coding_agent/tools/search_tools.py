"""
Code search tool: case-insensitive regex search across project files,
honouring the same ignore rules as the file tree.
"""

import os
import re

import pathspec

from ..context.ignore_rules import IgnoreRules
from ..errors import ToolExecutionError
from .base import relative_to_root, resolve_in_root

MAX_MATCHES = 500
MAX_FILE_BYTES = 1_000_000


def _compile(regex: str) -> re.Pattern:
    if not regex or not isinstance(regex, str):
        raise ValueError("regex is required and must be a string")
    try:
        return re.compile(regex, re.IGNORECASE)
    except re.error as e:
        raise ValueError(f"Invalid regex: {e}") from e


def _iter_files(directory: str, root: str, rules: IgnoreRules):
    with os.scandir(directory) as it:
        children = sorted(it, key=lambda e: e.name)
    for child in children:
        rel = relative_to_root(child.path, root)
        is_dir = child.is_dir()
        if rules.ignores(rel, is_dir=is_dir):
            continue
        if is_dir:
            if not child.is_symlink():
                yield from _iter_files(child.path, root, rules)
        elif child.is_file():
            yield child.path, rel


async def search_files(
    path: str,
    regex: str,
    file_pattern: str | None = None,
    no_ignore: bool = False,
    *,
    root: str,
) -> dict:
    """Search file contents by regex. Returns {file, line, match} records."""
    compiled = _compile(regex)
    resolved = resolve_in_root(path, root)
    if not os.path.exists(resolved):
        raise ToolExecutionError(f"Path not found: {path}")

    name_filter = None
    if file_pattern:
        name_filter = pathspec.GitIgnoreSpec.from_lines([file_pattern])

    rules = IgnoreRules.empty() if no_ignore else IgnoreRules.for_directory(
        resolved if os.path.isdir(resolved) else os.path.dirname(resolved)
    )

    if os.path.isdir(resolved):
        try:
            candidates = list(_iter_files(resolved, root, rules))
        except OSError as e:
            raise ToolExecutionError(f"Failed to search {path}: {e.strerror or e}") from e
    else:
        candidates = [(resolved, relative_to_root(resolved, root))]

    matches = []
    truncated = False
    for full_path, rel in candidates:
        if name_filter is not None and not name_filter.match_file(rel):
            continue
        try:
            if os.path.getsize(full_path) > MAX_FILE_BYTES:
                continue
            with open(full_path, "r", encoding="utf-8") as f:
                lines = f.read().splitlines()
        except (OSError, UnicodeDecodeError):
            continue  # binary or unreadable

        for number, line in enumerate(lines, start=1):
            if compiled.search(line):
                matches.append({"file": rel, "line": number, "match": line.strip()})
                if len(matches) >= MAX_MATCHES:
                    truncated = True
                    break
        if truncated:
            break

    return {
        "matches": matches,
        "total_matches": len(matches),
        "truncated": truncated,
    }
