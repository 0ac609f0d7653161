"""
Shared fixtures: temporary project trees, skill directories, SQLite history
stores and a scripted model client.
"""

import os
import sys
import textwrap

import pytest

# Add agent source to path
AGENT_SRC = os.path.join(os.path.dirname(__file__), "..", "agent")
sys.path.insert(0, os.path.abspath(AGENT_SRC))

from coding_agent.context.history_store import SqlChatHistoryStore  # noqa: E402
from coding_agent.model_client import ModelTurn, TextDelta, ToolRequest  # noqa: E402


def write_files(root, files: dict) -> None:
    """Create ``files`` ({relative path: content}) under ``root``."""
    for rel, content in files.items():
        path = os.path.join(str(root), rel)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)


def skill_markdown(name, description, body="Steps go here.", **extra) -> str:
    lines = ["---", f"name: {name}", f"description: {description}"]
    for key, value in extra.items():
        if isinstance(value, list):
            lines.append(f"{key}:")
            lines.extend(f"  - {item}" for item in value)
        elif isinstance(value, dict):
            lines.append(f"{key}:")
            lines.append(textwrap.indent(_yaml_mapping(value), "  "))
        else:
            lines.append(f"{key}: {value}")
    lines.append("---")
    lines.append(body)
    return "\n".join(lines) + "\n"


def _yaml_mapping(mapping: dict) -> str:
    out = []
    for key, value in mapping.items():
        if isinstance(value, dict):
            out.append(f"{key}:")
            out.append(textwrap.indent(_yaml_mapping(value), "  "))
        else:
            out.append(f"{key}: {value}")
    return "\n".join(out)


@pytest.fixture
def project_tree(tmp_path):
    """A small project with a .gitignore and some ignored noise."""
    root = tmp_path / "project"
    write_files(
        root,
        {
            "README.md": "# Demo\n",
            "src/app.py": "def main():\n    return 'hello world'\n",
            "src/utils/helpers.py": "HELPER = True\n",
            "docs/guide.md": "Hello docs\n",
            "build/output.bin": "binary-ish\n",
            "debug.log": "noise\n",
            "node_modules/pkg/index.js": "module.exports = {}\n",
            ".gitignore": "build/\n",
        },
    )
    return root


@pytest.fixture
def skills_dir(tmp_path):
    """Skill directory with two top-level skills and one auxiliary skill."""
    root = tmp_path / "skills"
    write_files(
        root,
        {
            "debugging/SKILL.md": skill_markdown(
                "debugging",
                "Systematic bug hunting",
                body="1. Reproduce\n2. Bisect\n",
                type="Skill",
                tags=["Debug", "Triage"],
                version="2.1.0",
                decision_triggers=["stack trace", "failing test", "regression"],
            ),
            "refactor/SKILL.md": skill_markdown(
                "refactor",
                "Safe incremental refactoring",
                type="skills",
                parameters={"scope": {"required": False, "default": "module"}},
            ),
            "refactor/rename/SKILL.md": skill_markdown(
                "rename-symbol",
                "Rename a symbol across the project",
                body="Use search first.\n",
                type="subskill",
                parameters={"symbol": {"required": True}},
            ),
        },
    )
    return root


@pytest.fixture
def history_store(tmp_path):
    """File-backed SQLite store (usable from worker threads)."""
    return SqlChatHistoryStore.from_url(f"sqlite:///{tmp_path / 'history.db'}")


class FakeModelClient:
    """Scripted ModelClient. Each script entry is one model call.

    An entry is either a string (plain text answer), a list of
    (name, arguments) tool requests, or an Exception to raise.
    """

    def __init__(self, script, chunk_size: int = 0):
        self.script = list(script)
        self.calls: list[dict] = []
        self.chunk_size = chunk_size

    async def stream(self, *, system, messages, tools):
        self.calls.append({
            "system": system,
            "messages": [dict(m) for m in messages],
            "tools": tools,
        })
        if not self.script:
            raise AssertionError("FakeModelClient script exhausted")
        step = self.script.pop(0)

        if isinstance(step, Exception):
            raise step
        if isinstance(step, str):
            size = self.chunk_size or len(step) or 1
            for i in range(0, len(step), size):
                yield TextDelta(step[i : i + size])
            yield ModelTurn(text=step, stop_reason="end_turn")
            return

        n = len(self.calls)
        requests = [
            ToolRequest(id=f"call_{n}_{i}", name=name, arguments=args)
            for i, (name, args) in enumerate(step)
        ]
        yield ModelTurn(text="", tool_requests=requests, stop_reason="tool_use")


@pytest.fixture
def fake_model():
    return FakeModelClient
