"""
Base tool utilities.
Provides project-root sandboxing (resolve_in_root), output truncation and
tolerant JSON argument parsing.
"""

import json
import os
import re

from ..errors import PathOutsideRootError

MAX_OUTPUT_BYTES = 20_000  # 20KB truncation limit


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def resolve_in_root(path: str, root: str) -> str:
    """Resolve ``path`` against ``root`` and ensure it stays inside.

    The first check is purely lexical, so an escaping path is rejected
    before any filesystem access. A second check on the real path rejects
    symlinks that point outside the root.
    """
    if path is None or not isinstance(path, str):
        raise ValueError("path is required")
    path = path.replace("\x00", "")
    allowed_root = os.path.abspath(root)

    candidate = path if os.path.isabs(path) else os.path.join(allowed_root, path)
    normalized = os.path.normpath(candidate)
    if not _is_within(normalized, allowed_root):
        raise PathOutsideRootError(path, allowed_root)

    real_root = os.path.realpath(allowed_root)
    resolved = os.path.realpath(normalized)
    if not _is_within(resolved, real_root):
        raise PathOutsideRootError(path, allowed_root)
    return resolved


def relative_to_root(path: str, root: str) -> str:
    rel = os.path.relpath(path, os.path.realpath(root))
    return "." if rel == os.curdir else rel.replace(os.sep, "/")


def truncate_output(text: str, limit: int = MAX_OUTPUT_BYTES) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= limit:
        return text
    return encoded[:limit].decode("utf-8", errors="ignore") + "\n... (output truncated)"


def try_parse_json(text: str) -> dict | str:
    """Attempt to parse text as JSON; return raw string on failure."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return text


def safe_parse_args(raw) -> dict:
    """Parse tool-call arguments, repairing common model malformations.

    Handles missing braces, single-quoted strings and unquoted keys.
    Anything still unparseable becomes an empty dict.
    """
    if isinstance(raw, dict):
        return raw
    if raw is None:
        return {}
    if not isinstance(raw, str):
        return {}

    text = raw.strip()
    if not text:
        return {}

    candidates = [text]
    if text.startswith('"') and ":" in text:
        candidates.append("{" + text + "}")
    candidates.append(text.replace("'", '"'))
    candidates.append(re.sub(r"([{,]\s*)([A-Za-z0-9_]+)(\s*:)", r'\1"\2"\3', text))

    for candidate in candidates:
        parsed = try_parse_json(candidate)
        if isinstance(parsed, dict):
            return parsed
    return {}
