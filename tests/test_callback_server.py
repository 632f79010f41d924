"""
Tests for the OAuth callback listener.

Two levels:
- the FastAPI app on its own (TestClient): page contents, once-only publishing
- the real uvicorn server on an ephemeral port: start, capture, shutdown, port conflicts
"""

from __future__ import annotations

import socket

import pytest
import requests
from fastapi.testclient import TestClient

from gemini_calendar.callback_server import CallbackListener, build_callback_app
from gemini_calendar.errors import ListenerStartupError
from gemini_calendar.secret_channel import SecretChannel


def test_redirect_with_code_publishes_and_shows_confirmation():
    ch = SecretChannel()
    client = TestClient(build_callback_app(ch))

    resp = client.get("/", params={"code": "4/abc", "scope": "calendar"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert "4/abc" in resp.text
    assert ch.await_value(timeout=1) == "4/abc"


def test_repeated_redirects_still_get_200_but_only_first_code_counts():
    ch = SecretChannel()
    client = TestClient(build_callback_app(ch))

    first = client.get("/?code=first")
    reload = client.get("/?code=second")

    assert first.status_code == 200
    assert reload.status_code == 200
    assert ch.await_value(timeout=1) == "first"


def test_requests_without_code_get_200_and_publish_nothing():
    ch = SecretChannel()
    client = TestClient(build_callback_app(ch))

    favicon = client.get("/favicon.ico")
    empty = client.get("/?code=")

    assert favicon.status_code == 200
    assert empty.status_code == 200
    assert "<pre></pre>" in empty.text
    assert not ch.published


def test_code_is_html_escaped():
    ch = SecretChannel()
    client = TestClient(build_callback_app(ch))

    resp = client.get("/", params={"code": "<script>x</script>"})

    assert "<script>x</script>" not in resp.text
    assert "&lt;script&gt;" in resp.text
    # The raw value is what gets handed to the flow.
    assert ch.await_value(timeout=1) == "<script>x</script>"


def test_live_listener_captures_code_and_shuts_down():
    ch = SecretChannel()
    listener = CallbackListener(ch, host="127.0.0.1", port=0, shutdown_timeout=2)

    listener.start()
    try:
        assert listener.running
        assert listener.port != 0

        resp = requests.get(f"http://127.0.0.1:{listener.port}/", params={"code": "live-code"}, timeout=5)
        assert resp.status_code == 200
        assert ch.await_value(timeout=5) == "live-code"
    finally:
        listener.stop()

    assert not listener.running
    with pytest.raises(requests.ConnectionError):
        requests.get(f"http://127.0.0.1:{listener.port}/", timeout=2)


def test_shutdown_without_code_releases_waiter():
    ch = SecretChannel()

    with CallbackListener(ch, host="127.0.0.1", port=0, shutdown_timeout=2):
        pass

    assert ch.await_value(timeout=5) is None


def test_stop_is_idempotent_and_safe_before_start():
    ch = SecretChannel()
    listener = CallbackListener(ch, host="127.0.0.1", port=0, shutdown_timeout=2)

    listener.stop()
    listener.stop()

    assert ch.closed


def test_port_in_use_is_a_startup_error():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    port = blocker.getsockname()[1]

    try:
        listener = CallbackListener(SecretChannel(), host="127.0.0.1", port=port)
        with pytest.raises(ListenerStartupError):
            listener.start()
        assert not listener.running
    finally:
        blocker.close()


def _ipv6_loopback_available() -> bool:
    if not socket.has_ipv6:
        return False
    try:
        with socket.socket(socket.AF_INET6, socket.SOCK_STREAM) as s:
            s.bind(("::1", 0))
    except OSError:
        return False
    return True


@pytest.mark.skipif(not _ipv6_loopback_available(), reason="no IPv6 loopback on this host")
def test_ipv6_literal_host_is_served():
    ch = SecretChannel()

    with CallbackListener(ch, host="::1", port=0, shutdown_timeout=2) as listener:
        resp = requests.get(f"http://[::1]:{listener.port}/", params={"code": "v6-code"}, timeout=5)

    assert resp.status_code == 200
    assert ch.await_value(timeout=1) == "v6-code"


def test_unusable_addresses_are_skipped(monkeypatch):
    """
    A resolver answer the host cannot bind (here a documentation-range IPv6
    address) is skipped; the listener still serves on the address it can bind.
    """
    real_getaddrinfo = socket.getaddrinfo

    def resolve_to_v6_and_v4(host, port, *args, **kwargs):
        if host != "localhost":
            return real_getaddrinfo(host, port, *args, **kwargs)
        return [
            (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("2001:db8::1", port, 0, 0)),
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("127.0.0.1", port)),
        ]

    ch = SecretChannel()
    listener = CallbackListener(ch, host="localhost", port=0, shutdown_timeout=2)
    with monkeypatch.context() as m:
        m.setattr(socket, "getaddrinfo", resolve_to_v6_and_v4)
        listener.start()

    try:
        assert listener.port != 0
        resp = requests.get(f"http://127.0.0.1:{listener.port}/", params={"code": "v4-code"}, timeout=5)
        assert resp.status_code == 200
    finally:
        listener.stop()

    assert ch.await_value(timeout=1) == "v4-code"


def test_unresolvable_host_is_a_startup_error():
    listener = CallbackListener(SecretChannel(), host="no-such-host.invalid", port=0)

    with pytest.raises(ListenerStartupError):
        listener.start()
    assert not listener.running
