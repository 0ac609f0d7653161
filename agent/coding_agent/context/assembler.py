"""
Context assembly: file tree, recent history, optional skill summary and the
system-prompt template, composed into one bundle per request.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from ..skills import SkillCatalog, load_catalog, render_summary_section
from .file_tree import build_tree
from .history import ConversationTurn, HistoryLoader
from .templates import TemplateFiller

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_TEMPLATE = "system_prompt"
DEFAULT_PROJECT_STATE = "Active"
SUMMARY_CONTENT_CHARS = 100

AGENT_SPEAKERS = frozenset({"agent", "assistant"})


@dataclass
class ContextBundle:
    system_prompt: str
    history_messages: list[dict[str, str]]
    context_data: dict[str, Any] = field(default_factory=dict)


def speaker_to_role(speaker: str) -> str:
    if speaker in AGENT_SPEAKERS:
        return "assistant"
    if speaker == "system":
        return "system"
    return "user"


def format_history_summary(turns: list[ConversationTurn]) -> str:
    if not turns:
        return "No recent history."
    lines = []
    for turn in turns:
        content = turn.content
        if len(content) > SUMMARY_CONTENT_CHARS:
            content = content[:SUMMARY_CONTENT_CHARS] + "..."
        lines.append(f"- {turn.speaker}: {content}")
    return f"Last {len(turns)} messages:\n" + "\n".join(lines)


class ContextAssembler:
    """Builds a :class:`ContextBundle` in a fixed order.

    Steps run strictly one after another (tree, history, skills, template);
    the first failure propagates and no later step runs.
    """

    def __init__(
        self,
        history_loader: HistoryLoader,
        *,
        skills_dir: str | None = None,
        template_filler: TemplateFiller | None = None,
        tree_builder: Callable[..., str] = build_tree,
        catalog_loader: Callable[[str], SkillCatalog] = load_catalog,
        tree_max_depth: int | None = 2,
        tree_max_lines: int = 50,
        history_limit: int = 20,
        project_state: str = DEFAULT_PROJECT_STATE,
        template_id: str = SYSTEM_PROMPT_TEMPLATE,
    ):
        self.history_loader = history_loader
        self.skills_dir = skills_dir
        self.template_filler = template_filler or TemplateFiller()
        self.tree_builder = tree_builder
        self.catalog_loader = catalog_loader
        self.tree_max_depth = tree_max_depth
        self.tree_max_lines = tree_max_lines
        self.history_limit = history_limit
        self.project_state = project_state
        self.template_id = template_id

    async def build_context(
        self,
        conversation_id: str,
        root_path: str,
        *,
        include_skills: bool = False,
        skill_names: Iterable[str] | None = None,
    ) -> ContextBundle:
        file_tree = await asyncio.to_thread(
            self.tree_builder,
            root_path,
            max_depth=self.tree_max_depth,
            max_lines=self.tree_max_lines,
        )

        turns = await self.history_loader.load_recent(conversation_id, self.history_limit)
        history_messages = [
            {"role": speaker_to_role(turn.speaker), "content": turn.content} for turn in turns
        ]
        history_summary = format_history_summary(turns)

        skills_section = ""
        if include_skills:
            skills_section = await self._skills_section(skill_names)

        context_data = {
            "file_tree": file_tree,
            "history_summary": history_summary,
            "project_state": self.project_state,
            "skills_section": skills_section,
        }
        system_prompt = self.template_filler.fill(self.template_id, context_data)

        logger.debug(
            "Context built: %d tree chars, %d history turns, skills=%s",
            len(file_tree),
            len(turns),
            bool(skills_section),
        )
        return ContextBundle(
            system_prompt=system_prompt,
            history_messages=history_messages,
            context_data=context_data,
        )

    async def _skills_section(self, skill_names: Iterable[str] | None) -> str:
        if not self.skills_dir:
            return ""
        catalog = await asyncio.to_thread(self.catalog_loader, self.skills_dir)
        names = list(skill_names) if skill_names is not None else None
        return render_summary_section(catalog, names)
