"""
Exception hierarchy shared by the context pipeline, tools and agent loop.
"""


class CodingAgentError(Exception):
    """Base class for errors raised by this package."""


class ToolError(CodingAgentError):
    """A tool call could not be carried out."""


class PathOutsideRootError(ToolError, ValueError):
    """A path argument resolves outside the project root."""

    def __init__(self, path: str, root: str):
        self.path = path
        self.root = root
        super().__init__(
            f"Access denied: path '{path}' resolves outside the project root '{root}'"
        )


class ToolExecutionError(ToolError):
    """The underlying storage failed while running a tool."""


class UnknownToolError(ToolError, LookupError):
    """No handler is registered for a (tool, action) pair."""


class UnsafeQueryError(ToolError, ValueError):
    """A SQL statement was rejected by the read-only guard."""


class ToolRegistrationError(CodingAgentError, TypeError):
    """A handler was registered with an invalid name or signature."""
