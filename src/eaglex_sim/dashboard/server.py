from __future__ import annotations

import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from threading import Thread
from typing import Optional
from urllib.parse import urlparse

from eaglex_sim.dashboard.state import DashboardState


class DashboardServer:
    """Read-only JSON view of the running simulation."""

    def __init__(self, state: DashboardState, host: str, port: int) -> None:
        self.state = state
        self.host = host
        self.port = port
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[Thread] = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        if self._server is not None:
            return

        state = self.state

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:  # noqa: N802
                path = urlparse(self.path).path
                if path == "/api/state":
                    self._serve_json(HTTPStatus.OK, state.snapshot())
                    return
                self._serve_json(HTTPStatus.NOT_FOUND, {"error": "not found", "path": path})

            def _serve_json(self, status: HTTPStatus, payload_obj: dict) -> None:
                payload = json.dumps(payload_obj, ensure_ascii=True, default=str).encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "application/json; charset=utf-8")
                self.send_header("Cache-Control", "no-store")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, format: str, *args: object) -> None:  # noqa: A003
                return

        self._server = ThreadingHTTPServer((self.host, self.port), Handler)
        # Port 0 binds an ephemeral port; report the real one.
        self.port = self._server.server_address[1]
        self._thread = Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None
