# gemini_calendar/tools.py
"""
The three tools the model can call, plus the request/result records that
carry a tool-call through the dispatch loop.

The executor owns its calendar backend and clock; nothing here touches
module-level state, so tests build one with a fake backend and a fixed clock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from gemini_calendar.errors import CalendarBackendError, ToolArgumentError, UnknownToolError
from gemini_calendar.gcal_tools import CalendarBackend
from gemini_calendar.timefmt import now_utc, to_rfc3339
from gemini_calendar.tool_registry import (
    CALENDAR_EVENT_LIST,
    CALENDAR_EVENT_REGISTER,
    TIME_NOW,
    EventListArgs,
    EventRegisterArgs,
    ToolArgs,
    ToolRegistry,
    build_default_registry,
)
from gemini_calendar.validator import ArgumentValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCallRequest:
    """A model-issued request to run `name` with a loosely typed argument bag."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallResult:
    """Outcome of one tool-call. Exactly one of payload/error is set."""
    name: str
    payload: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.payload is None) == (self.error is None):
            raise ValueError("ToolCallResult needs exactly one of payload or error")

    @classmethod
    def success(cls, name: str, payload: Dict[str, Any]) -> "ToolCallResult":
        return cls(name=name, payload=payload)

    @classmethod
    def failure(cls, name: str, error: str) -> "ToolCallResult":
        return cls(name=name, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_response(self) -> Dict[str, Any]:
        """The mapping sent back to the model as the function response."""
        if self.error is not None:
            return {"error": self.error}
        return dict(self.payload or {})


class ToolExecutor:
    """
    Validate, then run, one tool-call at a time.

    unknown_tool_policy:
      - "report": an unknown tool name becomes an error result for the model
      - "abort": raise UnknownToolError and end the turn
    """

    def __init__(
        self,
        backend: CalendarBackend,
        clock: Callable[[], datetime] = now_utc,
        registry: Optional[ToolRegistry] = None,
        validator: Optional[ArgumentValidator] = None,
        unknown_tool_policy: str = "report",
    ) -> None:
        self.backend = backend
        self.clock = clock
        self.registry = registry or build_default_registry()
        self.validator = validator or ArgumentValidator()
        self.unknown_tool_policy = unknown_tool_policy
        self._handlers: Dict[str, Callable[[Any], Dict[str, Any]]] = {
            TIME_NOW: self._time_now,
            CALENDAR_EVENT_LIST: self._event_list,
            CALENDAR_EVENT_REGISTER: self._event_register,
        }

    def execute(self, call: ToolCallRequest) -> ToolCallResult:
        descriptor = self.registry.get(call.name)
        handler = self._handlers.get(call.name)
        if descriptor is None or handler is None:
            if self.unknown_tool_policy == "abort":
                raise UnknownToolError(call.name)
            logger.warning("Model called unknown tool %r", call.name)
            return ToolCallResult.failure(
                call.name,
                f"unknown function call: {call.name}; available: {', '.join(self.registry.names())}",
            )

        try:
            args = self.validator.validate(descriptor, call.arguments)
        except ToolArgumentError as e:
            logger.warning("Rejected %s call: %s", call.name, e)
            return ToolCallResult.failure(call.name, str(e))

        try:
            payload = handler(args)
        except CalendarBackendError as e:
            logger.warning("%s failed: %s", call.name, e)
            return ToolCallResult.failure(call.name, str(e))

        return ToolCallResult.success(call.name, payload)

    # --- tools ---

    def _time_now(self, args: ToolArgs) -> Dict[str, Any]:
        return {"current_time": to_rfc3339(self.clock())}

    def _event_list(self, args: EventListArgs) -> Dict[str, Any]:
        events = self.backend.list_upcoming_events(after=self.clock(), max_results=args.count)
        return {"events": [ev.as_dict() for ev in events]}

    def _event_register(self, args: EventRegisterArgs) -> Dict[str, Any]:
        link = self.backend.insert_event(
            summary=args.summary,
            description=args.description,
            start=args.start,
            end=args.end,
        )
        return {
            "summary": args.summary,
            "description": args.description,
            "start": args.start,
            "end": args.end,
            "event_link": link,
        }
