"""
Environment configuration and model client factory.
"""

import os
from dataclasses import dataclass
from functools import lru_cache

from anthropic import AsyncAnthropic

DEFAULT_MODEL = "claude-sonnet-4-5"
PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
TEMPLATES_DIR = os.path.join(PACKAGE_DIR, "templates")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment.

    Supports:
      WORKSPACE_ROOT            project directory the tools are confined to
      SKILLS_DIR                directory scanned for SKILL.md files
      DATABASE_URL              SQLAlchemy URL for chat history and records
      LLM_MODEL / LLM_MAX_TOKENS
      AGENT_MAX_TOOL_ITERATIONS tool-call rounds allowed per request
      AGENT_MODEL_TIMEOUT       seconds allowed for one streamed model call
      CONTEXT_TREE_MAX_DEPTH / CONTEXT_TREE_MAX_LINES / CONTEXT_HISTORY_LIMIT
      LOG_LEVEL / LOG_FORMAT    "json" (default) or "text"
    """

    workspace_root: str
    skills_dir: str
    database_url: str = "sqlite:///./coding_agent.db"
    model_name: str = DEFAULT_MODEL
    max_tokens: int = 4096
    max_tool_iterations: int = 25
    model_timeout_seconds: float = 120.0
    tree_max_depth: int = 2
    tree_max_lines: int = 50
    history_limit: int = 20
    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> "Settings":
        workspace_root = os.path.abspath(os.getenv("WORKSPACE_ROOT", os.getcwd()))
        return cls(
            workspace_root=workspace_root,
            skills_dir=os.path.abspath(
                os.getenv("SKILLS_DIR", os.path.join(workspace_root, "skills"))
            ),
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            model_name=os.getenv("LLM_MODEL", DEFAULT_MODEL),
            max_tokens=_int_env("LLM_MAX_TOKENS", cls.max_tokens),
            max_tool_iterations=_int_env(
                "AGENT_MAX_TOOL_ITERATIONS", cls.max_tool_iterations
            ),
            model_timeout_seconds=_float_env(
                "AGENT_MODEL_TIMEOUT", cls.model_timeout_seconds
            ),
            tree_max_depth=_int_env("CONTEXT_TREE_MAX_DEPTH", cls.tree_max_depth),
            tree_max_lines=_int_env("CONTEXT_TREE_MAX_LINES", cls.tree_max_lines),
            history_limit=_int_env("CONTEXT_HISTORY_LIMIT", cls.history_limit),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            log_format=os.getenv("LOG_FORMAT", cls.log_format),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def get_client() -> AsyncAnthropic:
    """Create the Anthropic client. Reads ANTHROPIC_API_KEY from the environment."""
    return AsyncAnthropic()
