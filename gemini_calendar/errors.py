# gemini_calendar/errors.py
"""
Exception types shared across the agent.

Grouped by how far a failure is allowed to travel:
- startup failures stop the process before the first prompt
- protocol failures end the chat session
- tool failures are turned into a tool result and handed back to the model
"""

from __future__ import annotations


class GeminiCalendarError(Exception):
    """Base class for every error raised by this package."""


# --- Fatal startup ---

class ConfigurationError(GeminiCalendarError):
    """Missing or malformed settings (API key, client secrets, numeric env vars)."""


class ListenerStartupError(GeminiCalendarError):
    """The OAuth callback listener could not bind its port."""


class AuthorizationError(GeminiCalendarError):
    """The authorization code never arrived, or the provider refused to exchange it."""


# --- Fatal protocol ---

class ModelProtocolError(GeminiCalendarError):
    """The model could not be reached, or answered with something we cannot read."""


class UnknownToolError(GeminiCalendarError):
    """The model asked for a tool that is not registered (only raised under the abort policy)."""

    def __init__(self, name: str):
        super().__init__(f"unknown function call: {name}")
        self.name = name


class ToolCallLimitError(GeminiCalendarError):
    """Too many chained tool-calls in a single user turn."""

    def __init__(self, limit: int):
        super().__init__(f"model requested more than {limit} chained tool calls in one turn")
        self.limit = limit


# --- Recoverable, tool-level ---

class ToolArgumentError(GeminiCalendarError):
    """A tool-call's arguments do not match the tool's declared shape."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"invalid arguments for {tool_name}: {message}")
        self.tool_name = tool_name


class CalendarBackendError(GeminiCalendarError):
    """The Google Calendar API call failed (HTTP error or transport error)."""
