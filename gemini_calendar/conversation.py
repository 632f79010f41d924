# gemini_calendar/conversation.py
"""
Gemini chat session with manual function calling.

The SDK's automatic function calling is switched off: tool-calls come back
to us as ToolCallRequest parts, and the dispatch loop decides what runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import httpx
from google import genai
from google.genai import errors, types

from gemini_calendar.errors import ModelProtocolError
from gemini_calendar.tool_registry import ToolRegistry
from gemini_calendar.tools import ToolCallRequest, ToolCallResult

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_INSTRUCTION = (
    "You are a personal secretary with access to the user's Google Calendar. "
    "Whenever you pass a date-time to calendar_event_register, use RFC3339 format "
    "with an explicit timezone offset (for example 2025-01-31T09:00:00+09:00). "
    "Call time_now when you need to know the current date or time."
)


@dataclass(frozen=True)
class UnsupportedPart:
    """A response part that is neither text nor a function call (inline data, code execution, ...)."""
    kind: str


ResponsePart = Union[str, ToolCallRequest, UnsupportedPart]


@dataclass(frozen=True)
class ModelResponse:
    parts: Tuple[ResponsePart, ...] = ()

    @property
    def text(self) -> str:
        return "".join(p for p in self.parts if isinstance(p, str))

    @property
    def tool_calls(self) -> Tuple[ToolCallRequest, ...]:
        return tuple(p for p in self.parts if isinstance(p, ToolCallRequest))


def _unsupported_kind(part: types.Part) -> str:
    for name in ("inline_data", "file_data", "executable_code", "code_execution_result"):
        if getattr(part, name, None) is not None:
            return name
    return type(part).__name__


def parse_response(resp: types.GenerateContentResponse) -> ModelResponse:
    """
    Flatten the first candidate into text and tool-call parts.

    An empty reply that finished normally is a valid (empty) response; an empty
    reply for any other reason (safety block, max tokens) is a protocol error.
    """
    candidates = resp.candidates or []
    if not candidates:
        feedback = getattr(resp, "prompt_feedback", None)
        reason = getattr(feedback, "block_reason", None)
        if reason:
            raise ModelProtocolError(f"Gemini blocked the prompt: {reason}")
        raise ModelProtocolError("Gemini returned no candidates")

    candidate = candidates[0]
    content = candidate.content
    if content is None or not content.parts:
        finish = candidate.finish_reason
        if finish in (None, types.FinishReason.STOP):
            return ModelResponse(())
        raise ModelProtocolError(f"Gemini returned no content (finish reason: {finish})")

    parts = []
    for part in content.parts:
        if part.function_call is not None:
            call = part.function_call
            parts.append(ToolCallRequest(name=call.name or "", arguments=dict(call.args or {})))
        elif part.text is not None:
            if getattr(part, "thought", None):
                continue
            parts.append(part.text)
        else:
            parts.append(UnsupportedPart(kind=_unsupported_kind(part)))
    return ModelResponse(tuple(parts))


def build_client(api_key: str, timeout_seconds: int = 60, retry_attempts: int = 3) -> genai.Client:
    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(
            timeout=timeout_seconds * 1000,
            retry_options=types.HttpRetryOptions(attempts=retry_attempts),
        ),
    )


class GeminiConversation:
    """
    One chat session. History lives in the SDK chat object and only grows.
    """

    def __init__(self, chat) -> None:
        self._chat = chat

    @classmethod
    def start(
        cls,
        client: genai.Client,
        model: str,
        registry: ToolRegistry,
        system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION,
    ) -> "GeminiConversation":
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=[registry.as_genai_tool()],
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )
        chat = client.chats.create(model=model, config=config)
        logger.info("Started %s chat with tools: %s", model, ", ".join(registry.names()))
        return cls(chat)

    def send_message(self, text: str) -> ModelResponse:
        return self._send(text)

    def send_tool_results(self, results: Sequence[ToolCallResult]) -> ModelResponse:
        """Answer every tool-call of the previous response in one message, in call order."""
        parts = [
            types.Part.from_function_response(name=result.name, response=result.as_response())
            for result in results
        ]
        return self._send(parts)

    def _send(self, message) -> ModelResponse:
        try:
            resp = self._chat.send_message(message)
        except errors.APIError as e:
            raise ModelProtocolError(f"Gemini request failed: {e}") from e
        except httpx.HTTPError as e:
            raise ModelProtocolError(f"Could not reach Gemini: {e}") from e
        return parse_response(resp)
