# gemini_calendar/validator.py
"""
Decode a model-issued argument bag into a typed argument record.

Nothing reaches a tool (or the calendar) until it has passed through here.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from gemini_calendar.errors import ToolArgumentError
from gemini_calendar.tool_registry import ToolArgs, ToolDescriptor


def _describe(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(x) for x in e.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {e.get('msg', 'invalid value')}")
    return "; ".join(parts)


class ArgumentValidator:
    """
    Checks, in order:
    1) the bag is a mapping (None counts as empty)
    2) every required key is present and not None
    3) types and value constraints, via the descriptor's pydantic model

    Optional keys fall back to the model's defaults; unknown keys are ignored.
    """

    def validate(self, descriptor: ToolDescriptor, arguments: Any) -> ToolArgs:
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise ToolArgumentError(
                descriptor.name, f"expected an object of named arguments, got {type(arguments).__name__}"
            )

        required = descriptor.required_names
        missing = [name for name in required if arguments.get(name) is None]
        if missing:
            raise ToolArgumentError(
                descriptor.name,
                f"missing required argument(s) {', '.join(repr(m) for m in missing)}; got {dict(arguments)}",
            )

        # Gemini sends explicit nulls for optional fields now and then; let the default apply.
        cleaned = {k: v for k, v in arguments.items() if v is not None}
        try:
            return descriptor.args_model.model_validate(cleaned)
        except ValidationError as e:
            raise ToolArgumentError(descriptor.name, _describe(e)) from e
