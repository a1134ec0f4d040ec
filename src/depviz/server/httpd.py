# src/depviz/server/httpd.py
from __future__ import annotations

import sys
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import List, Optional, Tuple
from urllib.parse import urlsplit

from depviz.config import ServerConfig
from depviz.core import log
from depviz.core.log import LeveledLogger
from depviz.core.metrics import Timer, inc
from depviz.core.pubsub import Handle, TopicDispatcher
from depviz.ids import make_id
from depviz.server.senders import Exchange, FileSender, PendingRequests, StatusSender

TOPIC_SEND_FILE = "/dependapotamus/client/send/file"
TOPIC_SEND_STATUS = "/dependapotamus/client/send/status"

INDEX_PATHS = ("/", "/index.html")

_access = log.get("depviz.http")


def route(path: str) -> Tuple[str, object]:
    """Map a URL path to (topic, payload)."""
    if path in INDEX_PATHS:
        return TOPIC_SEND_FILE, "index.html"
    # /favicon.ico and everything else
    return TOPIC_SEND_STATUS, 404


class _RequestHandler(BaseHTTPRequestHandler):
    server_version = "depviz/0.0.1"

    def do_GET(self):
        self.drain_body()
        self.server.app.handle(self)

    def do_HEAD(self):
        self.server.app.handle(self, head_only=True)

    def __getattr__(self, name):
        # POST, PUT, DELETE and any other method route like GET
        if name.startswith("do_"):
            return self.do_GET
        raise AttributeError(name)

    def drain_body(self) -> None:
        # unread body bytes make close() reset the connection under the reply
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        if length > 0:
            self.rfile.read(length)

    def log_message(self, format, *args):
        _access.debug("%s - %s", self.address_string(), format % args)


class _HTTPServer(ThreadingHTTPServer):
    # server_close() joins request threads, so stop() waits for in-flight requests
    daemon_threads = False

    def __init__(self, address, app: "PresentationServer"):
        self.app = app
        super().__init__(address, _RequestHandler)

    def handle_error(self, request, client_address):
        self.app.logger.error(f"Error in server: {sys.exc_info()[1]}")
        _access.debug("request error", exc_info=True)


class PresentationServer:
    """HTTP listener that turns requests into dispatcher publishes."""

    def __init__(self, config: ServerConfig, logger: LeveledLogger, dispatcher: Optional[TopicDispatcher] = None):
        self.config = config
        self.logger = logger
        self.dispatcher = dispatcher or TopicDispatcher()
        self.pending = PendingRequests()
        self.handles: List[Handle] = []
        self._httpd: Optional[_HTTPServer] = None
        self._th: Optional[threading.Thread] = None
        self._serving = False

    def wire(self) -> None:
        if self.handles:
            return
        self.handles = [
            self.dispatcher.subscribe(TOPIC_SEND_FILE, FileSender(self.pending, self.logger)),
            self.dispatcher.subscribe(TOPIC_SEND_STATUS, StatusSender(self.pending, self.logger)),
        ]

    def bind(self) -> _HTTPServer:
        if self._httpd is not None:
            return self._httpd
        self.wire()
        try:
            self._httpd = _HTTPServer((self.config.host, self.config.port), self)
        except OSError as e:
            self.logger.error(f"Error in server: {e.strerror or e}")
            raise
        return self._httpd

    @property
    def address(self) -> Tuple[str, int]:
        if self._httpd is None:
            raise RuntimeError("server not bound")
        host, port = self._httpd.server_address[:2]
        return host, port

    def start(self) -> None:
        """Serve on a daemon thread."""
        if self._th and self._th.is_alive():
            return
        httpd = self.bind()
        self._serving = True
        self._th = threading.Thread(target=httpd.serve_forever, name="depviz-http", daemon=True)
        self._th.start()
        self.logger.info(f"listening on port {self.address[1]}")

    def serve_forever(self) -> None:
        httpd = self.bind()
        self.logger.info(f"listening on port {self.address[1]}")
        self._serving = True
        httpd.serve_forever()

    def stop(self) -> None:
        if self._httpd is None:
            return
        # shutdown() blocks unless a serve_forever loop has run
        if self._serving:
            self._httpd.shutdown()
        self._httpd.server_close()
        if self._th and threading.current_thread() is not self._th:
            self._th.join(timeout=1.0)
        self._httpd = None
        self._th = None
        self._serving = False
        self.logger.info("server stop")

    def handle(self, req: BaseHTTPRequestHandler, head_only: bool = False) -> None:
        path = urlsplit(req.path).path
        timestamp = round(time.time())
        self.logger.log(f"Received request for {req.path} at {timestamp}")

        ex = Exchange(make_id(self.config.request_id_length), req, head_only=head_only)
        while not self.pending.add(ex):
            ex.request_id = make_id(self.config.request_id_length)
        request_id = ex.request_id
        topic, payload = route(path)
        try:
            with Timer("http_request_ms", topic=topic):
                self.dispatcher.publish(topic, [request_id, payload])
                if not ex.answered:
                    self.logger.warn(f"{request_id}: nothing answered {req.path}, replying 501")
                    ex.reply(501, b"501 Not Implemented\n")
        except OSError as e:
            self.logger.error(f"Error in server: {e}")
        finally:
            self.pending.pop(request_id)
            inc("http_requests_total", 1, topic=topic, status=ex.status or 0)
