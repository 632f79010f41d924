# gemini_calendar/google_auth.py
"""
Google Calendar OAuth for a desktop CLI.

Flow:
1) Build the consent URL (offline access, so Google issues a refresh token)
2) Print it and start the local callback listener on the redirect port
3) Wait for the browser redirect to deliver ?code=...
4) Exchange the code for credentials
5) Stop the listener, whatever happened in 3) and 4)

Tokens are kept in memory only; every run authorizes again.
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import Callable, List, Optional

import requests
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from gemini_calendar.callback_server import CallbackListener
from gemini_calendar.errors import AuthorizationError, ConfigurationError
from gemini_calendar.secret_channel import SecretChannel

logger = logging.getLogger(__name__)


class FlowState(enum.Enum):
    IDLE = "idle"
    AWAITING_REDIRECT = "awaiting_redirect"
    EXCHANGING = "exchanging"
    COMPLETE = "complete"
    FAILED = "failed"


def build_google_flow(client_secrets_path: Path, scopes: List[str], redirect_uri: str) -> Flow:
    """
    Build a Google OAuth Flow from a downloaded client secrets file (credentials.json).

    The redirect URI must match the callback listener's bind address, e.g.
    http://localhost:28080/
    """
    if not Path(client_secrets_path).exists():
        raise ConfigurationError(f"OAuth client secrets file not found: {client_secrets_path}")
    try:
        return Flow.from_client_secrets_file(
            str(client_secrets_path),
            scopes=scopes,
            redirect_uri=redirect_uri,
        )
    except ValueError as e:
        # from_client_secrets_file raises ValueError for files that are neither "web" nor "installed".
        raise ConfigurationError(f"Malformed OAuth client secrets file {client_secrets_path}: {e}") from e


class AuthorizationFlow:
    """
    Orchestrates one authorization cycle against a single OAuth Flow.

    `listener_factory` receives the SecretChannel and returns an object with
    start()/stop(); tests swap in a fake that publishes a code immediately.
    """

    def __init__(
        self,
        flow: Flow,
        listener_factory: Callable[[SecretChannel], CallbackListener],
        code_timeout: Optional[float] = 300.0,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.flow = flow
        self.listener_factory = listener_factory
        self.code_timeout = code_timeout or None
        self.echo = echo
        self.state = FlowState.IDLE

    def authorization_url(self) -> str:
        auth_url, _state = self.flow.authorization_url(
            access_type="offline",      # Requests refresh token
            prompt="consent",           # Helps ensure refresh token is issued
            include_granted_scopes="true",
        )
        return auth_url

    def run(self) -> Credentials:
        """
        Run the whole cycle and return credentials.

        Raises:
            ListenerStartupError: the redirect port is taken
            AuthorizationError: no code arrived, or the exchange failed
        """
        if self.state is not FlowState.IDLE:
            raise RuntimeError(f"authorization flow already used (state={self.state.value})")

        channel = SecretChannel()
        listener = self.listener_factory(channel)
        auth_url = self.authorization_url()

        try:
            listener.start()
            self.state = FlowState.AWAITING_REDIRECT
            self.echo("Open the following URL in your browser to authorize calendar access:\n" + auth_url)

            code = self._await_code(channel)

            self.state = FlowState.EXCHANGING
            creds = self._exchange(code)
        except BaseException:
            self.state = FlowState.FAILED
            raise
        finally:
            listener.stop()

        self.state = FlowState.COMPLETE
        logger.info("Calendar authorization complete")
        return creds

    def _await_code(self, channel: SecretChannel) -> str:
        try:
            code = channel.await_value(timeout=self.code_timeout)
        except TimeoutError as e:
            raise AuthorizationError(
                f"No authorization code received within {self.code_timeout:.0f} seconds"
            ) from e
        if not code:
            raise AuthorizationError("Callback listener closed before an authorization code arrived")
        return code

    def _exchange(self, code: str) -> Credentials:
        try:
            self.flow.fetch_token(code=code)
        except OAuth2Error as e:
            raise AuthorizationError(f"Google rejected the authorization code: {e.description or e.error}") from e
        except requests.RequestException as e:
            raise AuthorizationError(f"Token exchange failed: {e}") from e
        return self.flow.credentials


def authorize(settings, scopes: List[str], echo: Callable[[str], None] = print) -> Credentials:
    """
    Run the interactive authorization against the configured client secrets.
    """
    flow = build_google_flow(settings.credentials_path, scopes, settings.redirect_uri)
    auth = AuthorizationFlow(
        flow,
        listener_factory=lambda channel: CallbackListener(
            channel,
            host=settings.redirect_host,
            port=settings.redirect_port,
            shutdown_timeout=settings.shutdown_timeout_seconds,
        ),
        code_timeout=settings.code_timeout_seconds,
        echo=echo,
    )
    return auth.run()
