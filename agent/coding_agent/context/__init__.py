"""
Context assembly pipeline: file tree, history, templates.
"""

from .assembler import ContextAssembler, ContextBundle, format_history_summary, speaker_to_role
from .file_tree import TRUNCATION_MARKER, build_tree
from .history import ConversationTurn, HistoryLoader, parse_metadata
from .history_store import SqlChatHistoryStore
from .ignore_rules import IgnoreRules
from .templates import TemplateFiller, render_template

__all__ = [
    "ContextAssembler",
    "ContextBundle",
    "ConversationTurn",
    "HistoryLoader",
    "IgnoreRules",
    "SqlChatHistoryStore",
    "TRUNCATION_MARKER",
    "TemplateFiller",
    "build_tree",
    "format_history_summary",
    "parse_metadata",
    "render_template",
    "speaker_to_role",
]
