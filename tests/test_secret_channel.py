"""
Tests for SecretChannel.

What these prove:
- Only the first published value is ever observed, no matter how many publishers.
- Closing an empty channel releases a waiter with None instead of hanging.
- A timeout is reported as TimeoutError.
"""

from __future__ import annotations

import threading
import time

import pytest

from gemini_calendar.secret_channel import SecretChannel


def test_first_publish_wins_and_later_ones_are_dropped():
    ch = SecretChannel()

    assert ch.publish("first") is True
    assert ch.publish("second") is False
    assert ch.publish("third") is False

    assert ch.await_value(timeout=1) == "first"


def test_value_is_handed_out_once():
    ch = SecretChannel()
    ch.publish("code")

    assert ch.await_value(timeout=1) == "code"
    assert ch.await_value(timeout=1) is None, "A second read must not see the secret again"


def test_concurrent_publishers_deliver_exactly_one_value():
    ch = SecretChannel()
    barrier = threading.Barrier(8)
    winners = []

    def publish(i):
        barrier.wait()
        if ch.publish(f"v{i}"):
            winners.append(f"v{i}")

    threads = [threading.Thread(target=publish, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(winners) == 1, f"Expected exactly one winning publish, got {winners}"
    assert ch.await_value(timeout=1) == winners[0]


def test_waiter_blocks_until_published_from_another_thread():
    ch = SecretChannel()
    threading.Timer(0.05, ch.publish, args=("late",)).start()

    started = time.monotonic()
    assert ch.await_value(timeout=5) == "late"
    assert time.monotonic() - started < 5


def test_close_without_publish_releases_waiter_with_none():
    ch = SecretChannel()
    threading.Timer(0.05, ch.close).start()

    assert ch.await_value(timeout=5) is None
    assert ch.closed


def test_publish_after_close_is_ignored():
    ch = SecretChannel()
    ch.close()

    assert ch.publish("too-late") is False
    assert ch.await_value(timeout=1) is None


def test_close_after_publish_keeps_the_value():
    ch = SecretChannel()
    ch.publish("code")
    ch.close()

    assert ch.await_value(timeout=1) == "code"


def test_timeout_raises():
    ch = SecretChannel()

    with pytest.raises(TimeoutError):
        ch.await_value(timeout=0.05)
