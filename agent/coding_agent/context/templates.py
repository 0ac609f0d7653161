"""
Placeholder substitution for prompt templates.

``{{ name }}`` is replaced with ``values["name"]``; unknown names collapse to
an empty string so the rendered prompt never contains raw markers.
"""

from __future__ import annotations

import os
import re
from typing import Any, Mapping

from ..config import TEMPLATES_DIR

PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")
TEMPLATE_SUFFIX = ".md"


def render_template(text: str, values: Mapping[str, Any]) -> str:
    def substitute(match: re.Match) -> str:
        value = values.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_RE.sub(substitute, text)


class TemplateFiller:
    def __init__(self, templates_dir: str = TEMPLATES_DIR):
        self.templates_dir = templates_dir

    def template_path(self, template_id: str) -> str:
        filename = template_id if template_id.endswith(TEMPLATE_SUFFIX) else template_id + TEMPLATE_SUFFIX
        return os.path.join(self.templates_dir, os.path.basename(filename))

    def fill(self, template_id: str, values: Mapping[str, Any]) -> str:
        path = self.template_path(template_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise FileNotFoundError(f"Cannot read template file: {path}. {e}") from e
        return render_template(text, values)
