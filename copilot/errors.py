"""
Exception types for the copilot.
"""


class CopilotError(Exception):
    """Base class for copilot failures."""


class ConfigError(CopilotError):
    """Raised when a chat session cannot be created, e.g. the API key is missing."""


class TransportError(CopilotError):
    """Raised when a model call or a tool's network access fails."""


class ToolArgumentError(CopilotError):
    """Raised when a function-call's arguments do not match the tool declaration."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"Invalid arguments for '{tool_name}': {message}")
