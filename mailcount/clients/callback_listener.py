"""Single-shot loopback HTTP listener that receives the OAuth redirect."""

from __future__ import annotations

import logging
import socketserver
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional
from urllib.parse import parse_qs, urlparse

logger = logging.getLogger(__name__)

_SUCCESS_PAGE = (
    b"<html><body><h3>Authorization received.</h3>"
    b"<p>You may close this window and return to the application.</p></body></html>"
)
_FAILURE_PAGE = (
    b"<html><body><h3>Authorization was not granted.</h3>"
    b"<p>Check the application logs for details.</p></body></html>"
)


@dataclass(frozen=True)
class CallbackResponse:
    """Query parameters delivered by the authorization server redirect."""

    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None


class _CallbackHandler(BaseHTTPRequestHandler):
    server: "_CallbackServer"

    def do_GET(self) -> None:  # noqa: N802 - http.server naming
        params = parse_qs(urlparse(self.path).query)
        code = params.get("code", [None])[0]
        error = params.get("error", [None])[0]
        if code is None and error is None:
            self.send_response(404)
            self.end_headers()
            return

        self.server.response = CallbackResponse(
            code=code, state=params.get("state", [None])[0], error=error
        )
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.end_headers()
        self.wfile.write(_SUCCESS_PAGE if code else _FAILURE_PAGE)

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("Callback listener: " + format, *args)


class _CallbackServer(HTTPServer):
    response: Optional[CallbackResponse] = None

    def server_bind(self) -> None:
        # Skip the reverse DNS lookup HTTPServer performs for server_name.
        socketserver.TCPServer.server_bind(self)
        self.server_name, self.server_port = self.server_address[:2]


class LocalCallbackListener:
    """Loopback listener bound on construction and closed exactly once."""

    poll_interval = 1.0

    def __init__(self, host: str, port: int) -> None:
        self._host = host
        self._server = _CallbackServer((host, port), _CallbackHandler)
        self._server.timeout = self.poll_interval
        self._closed = False

    @property
    def port(self) -> int:
        return self._server.server_address[1]

    @property
    def redirect_uri(self) -> str:
        return f"http://{self._host}:{self.port}/"

    def wait_for_response(self) -> Optional[CallbackResponse]:
        """Block until the redirect arrives; ``None`` if closed while waiting."""
        while self._server.response is None and not self._closed:
            try:
                self._server.handle_request()
            except (OSError, ValueError):
                if self._closed:
                    break
                raise
        return self._server.response

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._server.server_close()
        logger.debug("Closed OAuth callback listener on port %s", self.port)

    def __enter__(self) -> "LocalCallbackListener":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["CallbackResponse", "LocalCallbackListener"]
