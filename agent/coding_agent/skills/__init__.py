"""
Skill protocols loaded from SKILL.md files.
"""

from .registry import (
    CatalogIssue,
    SkillCatalog,
    SkillDescriptor,
    get_skill_body,
    load_catalog,
    render_summary_section,
)

__all__ = [
    "CatalogIssue",
    "SkillCatalog",
    "SkillDescriptor",
    "get_skill_body",
    "load_catalog",
    "render_summary_section",
]
