# gemini_calendar/secret_channel.py
"""
One-shot handoff of a secret from one thread to another.

The OAuth redirect page runs on the callback server's thread while the
authorization flow sits on the main thread waiting for the code. Browsers
happily hit the redirect URL more than once (reload, prefetch, favicon
probes), so the channel must:

- accept the FIRST published value and silently drop the rest
- unblock a waiter exactly once
- let the server close it so a waiter never hangs if no code ever arrives
"""

from __future__ import annotations

import threading
from typing import Optional


class SecretChannel:
    """
    Single-slot, single-delivery channel.

    Outcomes for a waiter:
    - the first published value
    - None, if the channel was closed before anything was published
      (or the value was already taken by an earlier waiter)
    - TimeoutError, if a timeout was given and neither happened in time
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._value: Optional[str] = None
        self._published = False
        self._closed = False
        self._consumed = False

    @property
    def published(self) -> bool:
        return self._published

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, value: str) -> bool:
        """
        Offer a value. Returns True only for the call that won the slot.

        Publishing after a successful publish, or after close(), is a no-op.
        """
        with self._lock:
            if self._published or self._closed:
                return False
            self._value = value
            self._published = True
            self._ready.set()
            return True

    def close(self) -> None:
        """Close the channel. A waiter with nothing published gets None."""
        with self._lock:
            self._closed = True
            self._ready.set()

    def await_value(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Block until a value is published or the channel is closed.

        The value is handed out once. Later calls return None immediately.
        """
        if not self._ready.wait(timeout):
            raise TimeoutError(f"no value published within {timeout} seconds")

        with self._lock:
            if not self._published or self._consumed:
                return None
            self._consumed = True
            value, self._value = self._value, None
            return value
