# gemini_calendar/tool_registry.py
"""
Static description of the tools the model may call.

Each tool's argument shape is a pydantic model. The same model drives:
- the FunctionDeclaration advertised to Gemini at chat start
- the ArgumentValidator that decodes a model-issued argument bag into a
  typed record before the tool runs
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type

from google.genai import types
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gemini_calendar.timefmt import parse_rfc3339

TIME_NOW = "time_now"
CALENDAR_EVENT_LIST = "calendar_event_list"
CALENDAR_EVENT_REGISTER = "calendar_event_register"

_PRIMITIVE_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
}


# ----------------------------
# Argument models (tool contracts)
# ----------------------------

class ToolArgs(BaseModel):
    """Base for argument records. Unknown keys from the model are dropped."""
    model_config = ConfigDict(extra="ignore", frozen=True)


class TimeNowArgs(ToolArgs):
    pass


class EventListArgs(ToolArgs):
    count: int = Field(..., ge=0, description="Number of upcoming events to list")

    @field_validator("count", mode="before")
    @classmethod
    def _reject_bool(cls, v: Any) -> Any:
        # bool is an int subclass; "count": true is a type error, not 1.
        if isinstance(v, bool):
            raise ValueError("count must be an integer, not a boolean")
        return v


class EventRegisterArgs(ToolArgs):
    start: str = Field(..., description="Start time of the event in RFC3339 format")
    end: str = Field(..., description="End time of the event in RFC3339 format")
    summary: str = Field(..., min_length=1, description="Title of the event")
    description: str = Field("", description="Simple description of the event")

    @field_validator("start", "end")
    @classmethod
    def _rfc3339(cls, v: str) -> str:
        parse_rfc3339(v)
        return v

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "EventRegisterArgs":
        if parse_rfc3339(self.end) < parse_rfc3339(self.start):
            raise ValueError("end must not be before start")
        return self


# ----------------------------
# Descriptors
# ----------------------------

@dataclass(frozen=True)
class ParameterSpec:
    name: str
    type: str
    required: bool
    description: str = ""


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    args_model: Type[ToolArgs]

    @property
    def parameters(self) -> Tuple[ParameterSpec, ...]:
        """Parameters in declaration order, derived from the argument model."""
        out = []
        for field_name, info in self.args_model.model_fields.items():
            out.append(
                ParameterSpec(
                    name=field_name,
                    type=_PRIMITIVE_TYPES.get(info.annotation, "string"),
                    required=info.is_required(),
                    description=info.description or "",
                )
            )
        return tuple(out)

    @property
    def required_names(self) -> List[str]:
        return [p.name for p in self.parameters if p.required]

    def as_function_declaration(self) -> types.FunctionDeclaration:
        params = self.parameters
        if not params:
            return types.FunctionDeclaration(name=self.name, description=self.description)

        schema = types.Schema(
            type=types.Type.OBJECT,
            properties={
                p.name: types.Schema(type=types.Type[p.type.upper()], description=p.description)
                for p in params
            },
            required=self.required_names or None,
        )
        return types.FunctionDeclaration(name=self.name, description=self.description, parameters=schema)


class ToolRegistry:
    """Ordered, name-unique collection of ToolDescriptors."""

    def __init__(self, descriptors: Optional[List[ToolDescriptor]] = None) -> None:
        self._tools: Dict[str, ToolDescriptor] = {}
        for d in descriptors or []:
            self.register(d)

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise ValueError(f"Tool '{descriptor.name}' is already registered.")
        self._tools[descriptor.name] = descriptor

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self):
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def as_genai_tool(self) -> types.Tool:
        return types.Tool(function_declarations=[d.as_function_declaration() for d in self])


def build_default_registry() -> ToolRegistry:
    return ToolRegistry(
        [
            ToolDescriptor(
                name=TIME_NOW,
                description="Get the current time in UTC",
                args_model=TimeNowArgs,
            ),
            ToolDescriptor(
                name=CALENDAR_EVENT_LIST,
                description="List upcoming calendar events from now",
                args_model=EventListArgs,
            ),
            ToolDescriptor(
                name=CALENDAR_EVENT_REGISTER,
                description="Register a new calendar event",
                args_model=EventRegisterArgs,
            ),
        ]
    )
