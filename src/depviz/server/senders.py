# src/depviz/server/senders.py
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler
from typing import Any, Dict, Optional

from depviz.core.log import LeveledLogger


@dataclass
class Exchange:
    """One in-flight HTTP request waiting for a sender to answer it."""
    request_id: str
    handler: BaseHTTPRequestHandler
    head_only: bool = False
    status: Optional[int] = None

    @property
    def answered(self) -> bool:
        return self.status is not None

    def reply(self, status: int, body: bytes = b"", content_type: str = "text/plain; charset=utf-8") -> bool:
        if self.answered:
            return False
        self.status = status
        h = self.handler
        h.send_response(status)
        h.send_header("Content-Type", content_type)
        h.send_header("Content-Length", str(len(body)))
        h.end_headers()
        if body and not self.head_only:
            h.wfile.write(body)
        return True


class PendingRequests:
    """Request id -> Exchange table shared by the listener and the senders."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: Dict[str, Exchange] = {}

    def add(self, ex: Exchange) -> bool:
        """Register ex; False when its request id is already taken."""
        with self._lock:
            if ex.request_id in self._items:
                return False
            self._items[ex.request_id] = ex
            return True

    def get(self, request_id: str) -> Optional[Exchange]:
        with self._lock:
            return self._items.get(request_id)

    def pop(self, request_id: str) -> Optional[Exchange]:
        with self._lock:
            return self._items.pop(request_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class Sender(ABC):
    """Dispatcher subscriber called as sender(request_id, payload)."""

    def __init__(self, pending: PendingRequests, logger: LeveledLogger):
        self.pending = pending
        self.logger = logger

    def __call__(self, request_id: str, payload: Any) -> bool:
        return self.send(request_id, payload)

    @abstractmethod
    def send(self, request_id: str, payload: Any) -> bool:
        ...


class FileSender(Sender):
    # Static file serving is not part of this server; the listener
    # answers unhandled requests with 501.
    def send(self, request_id: str, payload: Any) -> bool:
        self.logger.debug(f"{request_id}: file {payload} requested, file serving not available")
        return False


class StatusSender(Sender):
    def send(self, request_id: str, payload: Any) -> bool:
        ex = self.pending.get(request_id)
        if ex is None or ex.answered:
            self.logger.debug(f"{request_id}: no open request for status {payload}")
            return False
        status = int(payload)
        try:
            phrase = HTTPStatus(status).phrase
        except ValueError:
            phrase = ""
        ex.reply(status, f"{status} {phrase}".strip().encode("utf-8") + b"\n")
        self.logger.info(f"{request_id}: sent status {status}")
        return True
