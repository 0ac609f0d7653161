"""
Skill catalog: discovers SKILL.md files, validates their YAML frontmatter and
renders the condensed summary injected into the system prompt.

Every load rescans the directory; nothing is cached between calls.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

import yaml

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"
DEFAULT_VERSION = "1.0.0"
TOP_LEVEL_TYPES = frozenset({"skill", "skills"})
MAX_SUMMARY_TRIGGERS = 2

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL)


@dataclass(frozen=True)
class SkillDescriptor:
    relative_path: str
    name: str
    description: str
    type: str | None
    tags: tuple[str, ...]
    parameters: dict[str, Any] | None
    body: str
    raw_frontmatter: dict[str, Any] = field(repr=False)

    @property
    def version(self) -> str:
        version = self.raw_frontmatter.get("version")
        return str(version) if version not in (None, "") else DEFAULT_VERSION

    @property
    def decision_triggers(self) -> list[str]:
        triggers = self.raw_frontmatter.get("decision_triggers")
        if isinstance(triggers, str):
            return [triggers]
        if isinstance(triggers, list):
            return [str(t) for t in triggers]
        return []

    @property
    def is_top_level(self) -> bool:
        return self.type in TOP_LEVEL_TYPES

    def to_dict(self, include_body: bool = False) -> dict[str, Any]:
        data = {
            "path": self.relative_path,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "tags": list(self.tags),
            "version": self.version,
            "decision_triggers": self.decision_triggers,
            "parameters": self.parameters,
        }
        if include_body:
            data["body"] = self.body
        return data


@dataclass(frozen=True)
class CatalogIssue:
    """A non-fatal problem found while loading the catalog.

    ``dropped`` is True when the descriptor was rejected, False when it was
    admitted with degraded optional metadata.
    """

    path: str
    message: str
    dropped: bool = True


@dataclass
class SkillCatalog:
    root_dir: str
    skills: list[SkillDescriptor] = field(default_factory=list)
    issues: list[CatalogIssue] = field(default_factory=list)

    def __iter__(self) -> Iterator[SkillDescriptor]:
        return iter(self.skills)

    def __len__(self) -> int:
        return len(self.skills)

    def get(self, name: str) -> SkillDescriptor | None:
        """Case-insensitive lookup across top-level and auxiliary skills."""
        wanted = name.strip().lower()
        for skill in self.skills:
            if skill.name.lower() == wanted:
                return skill
        return None

    @property
    def top_level(self) -> list[SkillDescriptor]:
        return [s for s in self.skills if s.is_top_level]


def _find_skill_files(root_dir: str, issues: list[CatalogIssue]) -> list[str]:
    def on_error(err: OSError) -> None:
        where = err.filename or root_dir
        logger.warning("SkillRegistry: cannot read directory %s: %s", where, err.strerror or err)
        issues.append(CatalogIssue(path=str(where), message=f"unreadable directory: {err}"))

    found = []
    for dirpath, dirnames, filenames in os.walk(root_dir, onerror=on_error):
        dirnames.sort()
        if SKILL_FILENAME in filenames:
            found.append(os.path.join(dirpath, SKILL_FILENAME))
    return sorted(found, key=lambda p: os.path.relpath(p, root_dir).replace(os.sep, "/"))


def split_frontmatter(content: str) -> tuple[str, str] | None:
    """Return (yaml_text, body) or None if the file has no delimited header."""
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def parse_skill_file(path: str, root_dir: str) -> tuple[SkillDescriptor | None, list[CatalogIssue]]:
    """Parse and validate a single SKILL.md.

    Returns the descriptor (or None when rejected) plus any issues found.
    Never raises for malformed content.
    """
    rel = os.path.relpath(path, root_dir).replace(os.sep, "/")
    issues: list[CatalogIssue] = []

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        return None, [CatalogIssue(rel, f"failed to read file: {e}")]

    parts = split_frontmatter(content)
    if parts is None:
        return None, [CatalogIssue(rel, "no frontmatter block")]
    raw_yaml, body = parts

    try:
        frontmatter = yaml.safe_load(raw_yaml)
    except yaml.YAMLError as e:
        return None, [CatalogIssue(rel, f"invalid frontmatter: {e}")]

    if not isinstance(frontmatter, dict):
        return None, [CatalogIssue(rel, "frontmatter is not a mapping")]

    name = frontmatter.get("name")
    description = frontmatter.get("description")
    if not isinstance(name, str) or not name.strip():
        return None, [CatalogIssue(rel, "missing or invalid 'name'")]
    if not isinstance(description, str) or not description.strip():
        return None, [CatalogIssue(rel, "missing or invalid 'description'")]

    raw_type = frontmatter.get("type")
    skill_type = raw_type.strip().lower() if isinstance(raw_type, str) else None

    raw_tags = frontmatter.get("tags")
    tags = tuple(str(t).lower() for t in raw_tags) if isinstance(raw_tags, list) else ()

    parameters = frontmatter.get("parameters")
    if parameters is not None and not isinstance(parameters, dict):
        issues.append(
            CatalogIssue(rel, "'parameters' is not a mapping; ignored", dropped=False)
        )
        parameters = None

    descriptor = SkillDescriptor(
        relative_path=rel,
        name=name.strip(),
        description=description.strip(),
        type=skill_type,
        tags=tags,
        parameters=parameters,
        body=body,
        raw_frontmatter=frontmatter,
    )
    return descriptor, issues


def load_catalog(root_dir: str) -> SkillCatalog:
    """Scan ``root_dir`` for SKILL.md files and return every valid descriptor.

    Invalid files are skipped; each problem is logged as a warning and
    recorded on ``SkillCatalog.issues``.
    """
    root_dir = os.path.abspath(root_dir)
    catalog = SkillCatalog(root_dir=root_dir)

    if not os.path.isdir(root_dir):
        logger.warning("SkillRegistry: skills directory not found: %s", root_dir)
        catalog.issues.append(CatalogIssue(root_dir, "skills directory not found"))
        return catalog

    seen: set[str] = set()
    for path in _find_skill_files(root_dir, catalog.issues):
        descriptor, issues = parse_skill_file(path, root_dir)
        if descriptor is not None and descriptor.name.lower() in seen:
            issues.append(
                CatalogIssue(descriptor.relative_path, f"duplicate skill name '{descriptor.name}'")
            )
            descriptor = None
        for issue in issues:
            logger.warning("SkillRegistry: %s: %s", issue.path, issue.message)
        catalog.issues.extend(issues)
        if descriptor is not None:
            seen.add(descriptor.name.lower())
            catalog.skills.append(descriptor)

    logger.debug(
        "SkillRegistry: loaded %d skills from %s (%d issues)",
        len(catalog.skills),
        root_dir,
        len(catalog.issues),
    )
    return catalog


def format_skill_summary(skill: SkillDescriptor) -> str:
    line = f"- **{skill.name}** (v{skill.version}): {skill.description}"
    triggers = skill.decision_triggers
    if triggers:
        shown = ", ".join(triggers[:MAX_SUMMARY_TRIGGERS])
        if len(triggers) > MAX_SUMMARY_TRIGGERS:
            shown += "..."
        line += f" | Decision triggers: {shown}"
    return line


def render_summary_section(
    catalog: Iterable[SkillDescriptor],
    name_filter: Iterable[str] | None = None,
) -> str:
    """Render the "Available Skills" prompt section.

    Only top-level skills are listed, and never their bodies. Returns an
    empty string when nothing qualifies.
    """
    wanted = None
    if name_filter is not None:
        wanted = {n.strip().lower() for n in name_filter if isinstance(n, str)}

    lines = []
    for skill in catalog:
        if not skill.is_top_level:
            continue
        if wanted is not None and skill.name.lower() not in wanted:
            continue
        lines.append(format_skill_summary(skill))

    if not lines:
        return ""
    return "# Available Skills\n\n" + "\n".join(lines) + "\n"


def get_skill_body(root_dir: str, name: str) -> str | None:
    skill = load_catalog(root_dir).get(name)
    return skill.body if skill is not None else None
