"""
Sandboxed agent tools.
Provides TOOL_SCHEMAS (Anthropic format, one entry per ``<Tool>_<action>``)
and build_tool_registry(), which binds every handler to a project root,
skills directory and database engine.
"""

from functools import partial

from sqlalchemy.engine import Engine

from .base import resolve_in_root, safe_parse_args, truncate_output
from .database_tools import check_query_safety, list_tables, safe_query
from .file_tools import list_files, read_file, write_to_file
from .registry import ToolInvocation, ToolRegistry, ToolResult, parse_function_call
from .search_tools import search_files
from .skill_tools import get_skill, list_skills

# (tool, action) → {description, input_schema}
TOOL_SCHEMAS: dict[tuple[str, str], dict] = {
    ("FileSystemTool", "read_file"): {
        "description": (
            "Read a file and return its contents with line numbers. "
            "Use offset and limit to read specific line ranges in large files."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file, relative to the project root.",
                },
                "offset": {
                    "type": "integer",
                    "description": "Line offset to start reading from (0-based, default: 0).",
                    "default": 0,
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of lines to read (default: 2000).",
                    "default": 2000,
                },
            },
            "required": ["path"],
        },
    },
    ("FileSystemTool", "write_to_file"): {
        "description": (
            "Create or overwrite a file with the given content. "
            "Parent directories are created automatically."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file, relative to the project root.",
                },
                "content": {
                    "type": "string",
                    "description": "The full content to write to the file.",
                },
            },
            "required": ["path", "content"],
        },
    },
    ("FileSystemTool", "list_files"): {
        "description": (
            "List a directory as a tree. Ignored paths (.gitignore and defaults "
            "such as .git/ or node_modules/) are skipped unless no_ignore is set."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": 'Directory to list (default: ".").',
                    "default": ".",
                },
                "recursive": {
                    "type": "boolean",
                    "description": "Descend into subdirectories (default: true).",
                    "default": True,
                },
                "no_ignore": {
                    "type": "boolean",
                    "description": "Include ignored files (default: false).",
                    "default": False,
                },
            },
            "required": [],
        },
    },
    ("FileSystemTool", "search_files"): {
        "description": (
            "Search file contents by case-insensitive regex. "
            "Returns matching lines with file paths and line numbers."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "File or directory to search in.",
                },
                "regex": {
                    "type": "string",
                    "description": "Regular expression to search for.",
                },
                "file_pattern": {
                    "type": "string",
                    "description": 'Glob to filter files (e.g., "*.py", "src/**/*.ts").',
                },
                "no_ignore": {
                    "type": "boolean",
                    "description": "Search ignored files too (default: false).",
                    "default": False,
                },
            },
            "required": ["path", "regex"],
        },
    },
    ("DatabaseTool", "safe_query"): {
        "description": (
            "Run a single read-only SELECT query against the project database. "
            "Use :name placeholders with params for values."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "sql": {
                    "type": "string",
                    "description": "A single SELECT (or WITH ... SELECT) statement.",
                },
                "params": {
                    "type": "object",
                    "description": "Values for :name placeholders in the query.",
                },
            },
            "required": ["sql"],
        },
    },
    ("DatabaseTool", "list_tables"): {
        "description": "List the tables in the project database.",
        "input_schema": {"type": "object", "properties": {}, "required": []},
    },
    ("SkillTool", "list_skills"): {
        "description": "List every available skill with its type, version and tags.",
        "input_schema": {"type": "object", "properties": {}, "required": []},
    },
    ("SkillTool", "get_skill"): {
        "description": (
            "Load the full protocol of a skill by name, including auxiliary "
            "sub-skills referenced by a top-level skill."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "skill_name": {
                    "type": "string",
                    "description": "Name of the skill to load.",
                },
                "parameters": {
                    "type": "object",
                    "description": "Values for the skill's declared parameters.",
                },
            },
            "required": ["skill_name"],
        },
    },
}


def build_tool_registry(root: str, skills_dir: str, engine: Engine) -> ToolRegistry:
    handlers = {
        ("FileSystemTool", "read_file"): partial(read_file, root=root),
        ("FileSystemTool", "write_to_file"): partial(write_to_file, root=root),
        ("FileSystemTool", "list_files"): partial(list_files, root=root),
        ("FileSystemTool", "search_files"): partial(search_files, root=root),
        ("DatabaseTool", "safe_query"): partial(safe_query, engine=engine),
        ("DatabaseTool", "list_tables"): partial(list_tables, engine=engine),
        ("SkillTool", "list_skills"): partial(list_skills, skills_dir=skills_dir),
        ("SkillTool", "get_skill"): partial(get_skill, skills_dir=skills_dir),
    }

    registry = ToolRegistry(root=root)
    for (tool, action), handler in handlers.items():
        schema = TOOL_SCHEMAS[(tool, action)]
        registry.register(
            tool,
            action,
            handler,
            description=schema["description"],
            input_schema=schema["input_schema"],
        )
    return registry


__all__ = [
    "TOOL_SCHEMAS",
    "ToolInvocation",
    "ToolRegistry",
    "ToolResult",
    "build_tool_registry",
    "check_query_safety",
    "get_skill",
    "list_files",
    "list_skills",
    "list_tables",
    "parse_function_call",
    "read_file",
    "resolve_in_root",
    "safe_parse_args",
    "safe_query",
    "search_files",
    "truncate_output",
    "write_to_file",
]
