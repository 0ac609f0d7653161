"""
File operation tools: read, write, list directory.
Every path argument is resolved inside the project root before use.
"""

import os

from ..context.ignore_rules import IgnoreRules
from ..errors import ToolExecutionError
from .base import relative_to_root, resolve_in_root


async def read_file(path: str, offset: int = 0, limit: int = 2000, *, root: str) -> dict:
    """Read a file with optional line range. Returns numbered lines."""
    resolved = resolve_in_root(path, root)

    try:
        with open(resolved, "r", encoding="utf-8", errors="replace") as f:
            all_lines = f.readlines()
    except OSError as e:
        raise ToolExecutionError(f"Failed to read file {path}: {e.strerror or e}") from e

    offset = max(0, int(offset))
    limit = max(0, int(limit))
    total_lines = len(all_lines)
    selected = all_lines[offset : offset + limit]

    # Number lines (1-based)
    numbered = "".join(
        f"{i:>6}\t{line}" for i, line in enumerate(selected, start=offset + 1)
    )

    return {
        "path": relative_to_root(resolved, root),
        "content": numbered,
        "total_lines": total_lines,
        "truncated": total_lines > offset + limit,
    }


async def write_to_file(path: str, content: str, *, root: str) -> dict:
    """Create or overwrite a file. Parent directories are created as needed."""
    if content is None:
        raise ValueError("path and content are required")
    resolved = resolve_in_root(path, root)

    try:
        os.makedirs(os.path.dirname(resolved), exist_ok=True)
        with open(resolved, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise ToolExecutionError(f"Failed to write file {path}: {e.strerror or e}") from e

    return {
        "path": relative_to_root(resolved, root),
        "bytes_written": len(content.encode("utf-8")),
    }


def _list_entries(directory: str, root: str, rules: IgnoreRules, recursive: bool) -> list[dict]:
    entries = []
    with os.scandir(directory) as it:
        children = sorted(it, key=lambda e: (not e.is_dir(), e.name.casefold(), e.name))

    for child in children:
        rel = relative_to_root(child.path, root)
        is_dir = child.is_dir()
        if rules.ignores(rel, is_dir=is_dir):
            continue
        if is_dir:
            node = {"type": "directory", "name": child.name, "path": rel, "children": []}
            if recursive and not child.is_symlink():
                node["children"] = _list_entries(child.path, root, rules, recursive)
            entries.append(node)
        else:
            entries.append({"type": "file", "name": child.name, "path": rel})
    return entries


async def list_files(path: str = ".", recursive: bool = True, no_ignore: bool = False, *, root: str) -> dict:
    """List a directory as a tree of {type, name, path, children} nodes.

    ``recursive=False`` is the shallow mode: subdirectories are returned
    with empty ``children``.
    """
    resolved = resolve_in_root(path, root)
    if not os.path.isdir(resolved):
        raise ToolExecutionError(f"Not a directory: {path}")

    rules = IgnoreRules.empty() if no_ignore else IgnoreRules.for_directory(resolved)
    try:
        entries = _list_entries(resolved, root, rules, bool(recursive))
    except OSError as e:
        raise ToolExecutionError(f"Failed to list {path}: {e.strerror or e}") from e

    return {"path": relative_to_root(resolved, root), "entries": entries}
