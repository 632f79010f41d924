# gemini_calendar/cli.py
"""
Command line entry point.

  gemini-calendar [chat]          authorize, then chat with Gemini about your calendar
  gemini-calendar auth            authorize and list the next few events
  gemini-calendar tool NAME       authorize and run one tool directly (no Gemini involved)
  gemini-calendar mcp             serve the clock tool over MCP
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Callable, List, Optional

from gemini_calendar.conversation import GeminiConversation, build_client
from gemini_calendar.dispatch import DispatchLoop
from gemini_calendar.errors import (
    AuthorizationError,
    ConfigurationError,
    ListenerStartupError,
    ModelProtocolError,
    ToolCallLimitError,
    UnknownToolError,
)
from gemini_calendar.gcal_tools import CalendarBackend, build_calendar_service
from gemini_calendar.google_auth import authorize
from gemini_calendar.log import configure_logging
from gemini_calendar.settings import CALENDAR_SCOPES, Settings, get_settings
from gemini_calendar.tool_registry import build_default_registry
from gemini_calendar.tools import ToolCallRequest, ToolExecutor

try:
    import readline  # noqa: F401  (line editing and history for input())
except ImportError:  # pragma: no cover - not available on Windows
    pass

logger = logging.getLogger(__name__)

PROMPT = "Gemini> "


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gemini-calendar",
        description="Chat with Gemini about your Google Calendar.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ...).")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("chat", help="Authorize and start an interactive chat (default).")

    auth_parser = subparsers.add_parser("auth", help="Authorize and list upcoming events.")
    auth_parser.add_argument("--count", type=int, default=5)

    tool_parser = subparsers.add_parser("tool", help="Authorize and run one tool-call without the model.")
    tool_parser.add_argument("name")
    tool_parser.add_argument("--args", default="{}", help='Arguments as a JSON object, e.g. \'{"count": 3}\'.')

    mcp_parser = subparsers.add_parser("mcp", help="Serve the time_now tool over MCP streamable HTTP.")
    mcp_parser.add_argument("--host", default="127.0.0.1")
    mcp_parser.add_argument("--port", type=int, default=8080)

    return parser


def _backend(settings: Settings) -> CalendarBackend:
    creds = authorize(settings, CALENDAR_SCOPES)
    service = build_calendar_service(creds, timeout=settings.calendar_http_timeout_seconds)
    return CalendarBackend(
        service,
        calendar_id=settings.calendar_id,
        timezone=settings.calendar_timezone,
        num_retries=settings.calendar_num_retries,
    )


def repl(loop: DispatchLoop, read_line: Callable[[str], str] = input, emit: Callable[[str], None] = print) -> None:
    """
    Read prompts until Ctrl-C / Ctrl-D. Turn-level failures are reported and the
    next prompt is read; protocol failures propagate and end the session.
    """
    try:
        while True:
            try:
                prompt = read_line(PROMPT)
            except (KeyboardInterrupt, EOFError):
                emit("\nExiting...")
                break

            if not prompt.strip():
                continue

            try:
                loop.run_turn(prompt)
            except ToolCallLimitError as e:
                logger.warning("Turn stopped: %s", e)
                emit(f"Turn stopped: {e}")
            except KeyboardInterrupt:
                emit("\nExiting...")
                break
    finally:
        emit("Session ended")


def run_chat(settings: Settings) -> int:
    settings.require()
    backend = _backend(settings)

    registry = build_default_registry()
    client = build_client(
        settings.genai_api_key,
        timeout_seconds=settings.genai_timeout_seconds,
        retry_attempts=settings.genai_retry_attempts,
    )
    conversation = GeminiConversation.start(client, settings.genai_model, registry)
    executor = ToolExecutor(backend, registry=registry, unknown_tool_policy=settings.unknown_tool_policy)
    loop = DispatchLoop(conversation, executor, max_tool_calls=settings.max_tool_calls_per_turn)

    repl(loop)
    return 0


def run_auth_check(settings: Settings, count: int) -> int:
    settings.require(need_model=False)
    backend = _backend(settings)

    executor = ToolExecutor(backend)
    result = executor.execute(ToolCallRequest("calendar_event_list", {"count": count}))
    if not result.ok:
        print(f"Authorized, but listing events failed: {result.error}", file=sys.stderr)
        return 1

    events = result.payload["events"]
    print(f"\nAuthorized. Next {len(events)} event(s):\n")
    for ev in events:
        print(f"- {ev['start']} | {ev['summary']} | id={ev['id']}")
    return 0


def run_tool(settings: Settings, name: str, raw_args: str) -> int:
    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as e:
        print(f"--args is not valid JSON: {e}", file=sys.stderr)
        return 2

    settings.require(need_model=False)
    executor = ToolExecutor(_backend(settings), unknown_tool_policy="report")
    result = executor.execute(ToolCallRequest(name, arguments))
    print(json.dumps({"name": result.name, "response": result.as_response()}, indent=2, ensure_ascii=False))
    return 0 if result.ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(args.log_level or settings.log_level)
    command = args.command or "chat"

    try:
        if command == "mcp":
            from gemini_calendar.mcp_server import run_mcp_server

            run_mcp_server(host=args.host, port=args.port)
            return 0
        if command == "auth":
            return run_auth_check(settings, args.count)
        if command == "tool":
            return run_tool(settings, args.name, args.args)
        return run_chat(settings)
    except (ConfigurationError, ListenerStartupError, AuthorizationError) as e:
        print(f"Startup failed: {e}", file=sys.stderr)
        return 1
    except (ModelProtocolError, UnknownToolError) as e:
        print(f"Session terminated: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
