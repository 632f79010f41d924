# gemini_calendar/dispatch.py
"""
Drive one user turn: prompt -> (tool-calls -> results ->)* -> text.

A response with tool-calls is answered with one result per call, all in a
single message, and the model's reply to THAT is consumed the same way.
Calls in one response run one after another, never concurrently.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from gemini_calendar.conversation import GeminiConversation, ModelResponse, UnsupportedPart
from gemini_calendar.errors import ToolCallLimitError
from gemini_calendar.tools import ToolCallRequest, ToolCallResult, ToolExecutor

logger = logging.getLogger(__name__)


class DispatchLoop:
    def __init__(
        self,
        conversation: GeminiConversation,
        executor: ToolExecutor,
        max_tool_calls: int = 8,
        emit: Callable[[str], None] = print,
    ) -> None:
        self.conversation = conversation
        self.executor = executor
        self.max_tool_calls = max_tool_calls
        self.emit = emit

    def run_turn(self, prompt: str) -> None:
        """
        Send `prompt` and keep answering tool-calls until the model replies with text only.

        Raises:
            ModelProtocolError: the model is unreachable or answered nonsense
            UnknownToolError: unknown tool under the "abort" policy
            ToolCallLimitError: more than `max_tool_calls` tool-calls in the turn
        """
        response = self.conversation.send_message(prompt)
        self._consume(response, calls_so_far=0)

    def _consume(self, response: ModelResponse, calls_so_far: int) -> None:
        results: List[ToolCallResult] = []
        for part in response.parts:
            if isinstance(part, str):
                self.emit(f"RESP: {part}")
            elif isinstance(part, ToolCallRequest):
                results.append(self._handle_tool_call(part, calls_so_far + len(results)))
            elif isinstance(part, UnsupportedPart):
                self.emit(f"Unexpected content type: {part.kind}")

        if results:
            # The model expects exactly one response per call it made.
            reply = self.conversation.send_tool_results(results)
            self._consume(reply, calls_so_far + len(results))

    def _handle_tool_call(self, call: ToolCallRequest, index: int) -> ToolCallResult:
        self.emit(f"CALL: {call.name}")
        logger.info("Tool call %s args=%s", call.name, call.arguments)

        if index > self.max_tool_calls:
            raise ToolCallLimitError(self.max_tool_calls)
        if index == self.max_tool_calls:
            # One refusal so the model can still answer in text; the next call ends the turn.
            logger.warning("Tool call limit (%d) reached, refusing %s", self.max_tool_calls, call.name)
            return ToolCallResult.failure(
                call.name,
                f"tool call limit of {self.max_tool_calls} reached for this turn; answer the user without calling tools",
            )

        result = self.executor.execute(call)
        logger.debug("Tool %s ok=%s", call.name, result.ok)
        return result
