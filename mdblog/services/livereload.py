"""Live-reload hub: connected browser sockets told to refresh on content change."""

import logging
import threading
from functools import lru_cache
from pathlib import Path

from starlette.websockets import WebSocket

logger = logging.getLogger(__name__)

REFRESH_MESSAGE = "refresh"

_CLIENT_SCRIPT = Path(__file__).resolve().parent.parent / "static" / "hmr.js"


@lru_cache
def client_script() -> str:
    """Browser script that connects to the hub and reloads on refresh."""
    return _CLIENT_SCRIPT.read_text(encoding="utf-8")


class LiveReloadHub:
    """Set of live-reload listeners with snapshot broadcast.

    Registration happens on connection open, removal on close. Broadcast
    sends to a copy of the set so no lock is held while awaiting I/O, and a
    failing socket does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._sockets: set[WebSocket] = set()
        self._lock = threading.Lock()

    def add(self, socket: WebSocket) -> None:
        with self._lock:
            self._sockets.add(socket)

    def discard(self, socket: WebSocket) -> None:
        with self._lock:
            self._sockets.discard(socket)

    def __len__(self) -> int:
        return len(self._sockets)

    async def broadcast(self, message: str = REFRESH_MESSAGE) -> int:
        """Send *message* to every listener. Returns how many received it."""
        with self._lock:
            sockets = list(self._sockets)

        delivered = 0
        for socket in sockets:
            try:
                await socket.send_text(message)
                delivered += 1
            except Exception:
                logger.warning("Dropping live-reload listener after send failure")
                self.discard(socket)
        logger.info("Sent %r to %d live-reload listeners", message, delivered)
        return delivered
