"""
Local HTTP endpoint receiving the OAuth redirect.

The listener lives for exactly one authentication attempt:

    IDLE --start()--> LISTENING --callback--> VALIDATING --+--> COMPLETED
                                                         +--> REJECTED
                                                         +--> FAILED
    any state --stop()--> STOPPED

    COMPLETED  state matched, code exchanged, confirmation page served
    REJECTED   state mismatch (InvalidOAuthStateError), consent denied or
               no code; the token endpoint is never contacted
    FAILED     state matched but the exchange itself raised

Only the first request to the callback path is processed. Requests to
other paths (browsers ask for /favicon.ico) get a 404 and listening goes
on; requests arriving after the outcome is decided get a 410.

The HTTP server is created through an injectable factory, so tests can
drive handle_callback() directly or substitute a fake server.
"""

import html
import time
from dataclasses import dataclass
from enum import Enum
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse

from spot_curator.core.exceptions import (
    AuthError,
    CallbackTimeoutError,
    InvalidOAuthStateError,
    StorageError,
)
from spot_curator.core.logger import get_logger
from spot_curator.spotify.csrf import CsrfStateGenerator

logger = get_logger(__name__)


SUCCESS_PAGE = """<!DOCTYPE html>
<html>
<head><title>spot-curator</title></head>
<body style="font-family: Arial, sans-serif; text-align: center; margin-top: 50px;">
    <h1 style="color: #1DB954;">Successfully authenticated!</h1>
    <p>You can now close this window and return to the terminal.</p>
</body>
</html>
"""

_ERROR_PAGE = """<!DOCTYPE html>
<html>
<head><title>spot-curator</title></head>
<body style="font-family: Arial, sans-serif; text-align: center; margin-top: 50px;">
    <h1 style="color: #E22134;">Authentication failed</h1>
    <p>{message}</p>
    <p>Return to the terminal and run the command again.</p>
</body>
</html>
"""

POLL_INTERVAL = 0.5
# An accepted connection that sends nothing is dropped after this many seconds
REQUEST_READ_TIMEOUT = 2


class ListenerState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    VALIDATING = "validating"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class CallbackResponse:
    """Status code and HTML body sent back to the browser."""
    status: int
    body: str


class _CallbackRequestHandler(BaseHTTPRequestHandler):
    server_version = "SpotCuratorCallback/1.0"
    timeout = REQUEST_READ_TIMEOUT

    def do_GET(self):  # noqa: N802
        response = self.server.listener.handle_callback(self.path)
        body = response.body.encode("utf-8")
        self.send_response(response.status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):  # noqa: A002
        logger.debug("Callback server: " + format % args)


class CallbackListener:
    """
    Single-shot receiver for the authorization redirect.

    Args:
        host: Loopback address to bind.
        port: Port to bind (0 picks a free one; see server_address).
        path: Callback path, e.g. "/auth".
        expected_state: The state generated for this attempt.
        on_code: Called with the authorization code once the state has
                 been validated; its return value becomes the result.
        timeout: Seconds wait() blocks before raising CallbackTimeoutError.
        server_factory: Callable (address, handler_class) -> server.
        clock: Monotonic time source.

    Example:
        listener = CallbackListener(
            "localhost", 8000, "/auth", state, exchanger.exchange_code
        )
        credentials = listener.run()
    """

    def __init__(
        self,
        host: str,
        port: int,
        path: str,
        expected_state: str,
        on_code: Callable[[str], Any],
        timeout: float = 300,
        server_factory: Callable[..., Any] = HTTPServer,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.host = host
        self.port = port
        self.path = path
        self._expected_state = expected_state
        self._on_code = on_code
        self.timeout = timeout
        self._server_factory = server_factory
        self._clock = clock
        self._server: Any = None

        self.state = ListenerState.IDLE
        self.outcome: ListenerState | None = None
        self.result: Any = None
        self.error: AuthError | StorageError | None = None

    @property
    def server_address(self) -> tuple[str, int]:
        if self._server is None:
            return (self.host, self.port)
        return self._server.server_address[:2]

    def start(self) -> None:
        """
        Bind the HTTP server.

        Raises:
            AuthError: If the listener was already started, or the address
                       cannot be bound (port in use).
        """
        if self.state is not ListenerState.IDLE:
            raise AuthError(
                f"Callback listener cannot start from state '{self.state.value}'"
            )

        try:
            self._server = self._server_factory((self.host, self.port), _CallbackRequestHandler)
        except OSError as e:
            raise AuthError(
                f"Cannot listen on {self.host}:{self.port}: {e}",
                details={"host": self.host, "port": self.port, "original_error": str(e)}
            ) from e

        self._server.listener = self
        self._server.timeout = POLL_INTERVAL
        self.state = ListenerState.LISTENING
        logger.debug(f"Waiting for authorization callback on {self.host}:{self.port}{self.path}")

    def handle_callback(self, request_path: str) -> CallbackResponse:
        """
        Process one GET request and return the page to serve.

        Never raises: failures are recorded in `error` and reported by wait().
        """
        parsed = urlparse(request_path)
        if parsed.path != self.path:
            return CallbackResponse(404, _ERROR_PAGE.format(message="Not found."))

        if self.state is not ListenerState.LISTENING:
            return CallbackResponse(
                410, _ERROR_PAGE.format(message="This authorization attempt is already finished.")
            )

        self.state = ListenerState.VALIDATING
        params = parse_qs(parsed.query)
        received_state = (params.get("state") or [None])[0]

        if not CsrfStateGenerator.validate(received_state, self._expected_state):
            logger.error("OAuth callback rejected: state parameter mismatch")
            return self._reject(InvalidOAuthStateError(details={"path": parsed.path}))

        if "error" in params:
            reason = params["error"][0]
            return self._reject(AuthError(
                f"Authorization denied: {reason}",
                details={"error": reason}
            ))

        code = (params.get("code") or [None])[0]
        if not code:
            return self._reject(AuthError("Callback did not include an authorization code"))

        try:
            self.result = self._on_code(code)
        except (AuthError, StorageError) as e:
            logger.error(f"Token exchange failed: {e.message}")
            self.error = e
            self._finish(ListenerState.FAILED)
            return CallbackResponse(502, _ERROR_PAGE.format(message=html.escape(e.message)))
        except Exception as e:
            logger.exception("Token exchange failed unexpectedly")
            self.error = AuthError(
                f"Token exchange failed: {e}",
                details={"original_error": repr(e)}
            )
            self._finish(ListenerState.FAILED)
            return CallbackResponse(502, _ERROR_PAGE.format(message=html.escape(self.error.message)))

        self._finish(ListenerState.COMPLETED)
        return CallbackResponse(200, SUCCESS_PAGE)

    def wait(self) -> Any:
        """
        Serve requests until the callback is handled or the timeout expires.

        Returns:
            Whatever on_code returned.

        Raises:
            InvalidOAuthStateError: State mismatch.
            AuthError: Denied consent, missing code, exchange failure.
            CallbackTimeoutError: Nothing arrived within `timeout` seconds.
            StorageError: Tokens could not be persisted.
        """
        if self.state is ListenerState.IDLE:
            raise AuthError("Callback listener has not been started")

        deadline = self._clock() + self.timeout
        while self.state is ListenerState.LISTENING:
            if self._clock() >= deadline:
                raise CallbackTimeoutError(
                    f"No authorization callback received within {self.timeout:g} seconds",
                    details={"timeout": self.timeout}
                )
            self._server.handle_request()

        if self.error is not None:
            raise self.error
        return self.result

    def stop(self) -> None:
        """Release the socket. Safe to call more than once."""
        if self._server is not None:
            self._server.server_close()
            self._server = None
        self.state = ListenerState.STOPPED

    def run(self) -> Any:
        """start(), wait() and always stop()."""
        self.start()
        try:
            return self.wait()
        finally:
            self.stop()

    def __enter__(self) -> "CallbackListener":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _reject(self, error: AuthError) -> CallbackResponse:
        self.error = error
        self._finish(ListenerState.REJECTED)
        return CallbackResponse(400, _ERROR_PAGE.format(message=html.escape(error.message)))

    def _finish(self, outcome: ListenerState) -> None:
        self.outcome = outcome
        self.state = outcome
