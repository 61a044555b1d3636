"""Unix-socket client for the vibecop daemon: event stream and request/response calls."""

from __future__ import annotations

import json
import socket
import threading
from collections.abc import Iterator, Mapping
from contextlib import closing
from types import TracebackType
from typing import Any

from vibecop.models import (
    ConfigResponse,
    Event,
    PendingEntry,
    config_response_from_dict,
    event_from_dict,
    pending_entry_from_dict,
)

DAEMON_REQUEST_TIMEOUT = 2.0
SUBSCRIBE_DIAL_TIMEOUT = 3.0
MAX_EVENT_LINE = 1024 * 1024

TYPE_TUI_SUBSCRIBE = "tui_subscribe"
TYPE_GET_CONFIG = "get_config"
TYPE_LIST_PENDING = "list_pending"
TYPE_COMPLETE_PENDING = "complete_pending"

_RECV_SIZE = 65536


class DaemonError(Exception):
    """Raised when the daemon cannot be reached or rejects a request."""


def _encode(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8") + b"\n"


def _read_json(sock: socket.socket) -> Any:
    """Read exactly one JSON value from the socket."""
    buffer = bytearray()
    decoder = json.JSONDecoder()
    while True:
        chunk = sock.recv(_RECV_SIZE)
        if not chunk:
            raise DaemonError("connection closed before a complete response")
        buffer += chunk
        try:
            text = buffer.decode("utf-8").lstrip()
            value, _ = decoder.raw_decode(text)
        except ValueError:
            continue
        return value


class DaemonClient:
    """Talks to the daemon over its Unix domain socket.

    Each request opens a fresh short-lived connection; the event
    subscription holds one long-lived connection that ``close`` ends.
    """

    def __init__(self, socket_path: str, timeout: float = DAEMON_REQUEST_TIMEOUT) -> None:
        self.socket_path = socket_path
        self.timeout = timeout
        self._conn: socket.socket | None = None
        self._lock = threading.Lock()

    def _dial(self, timeout: float) -> socket.socket:
        if not self.socket_path:
            raise DaemonError("no socket path configured")
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(timeout)
        try:
            sock.connect(self.socket_path)
        except OSError as exc:
            sock.close()
            raise DaemonError(f"connect to daemon: {exc}") from exc
        return sock

    def _request(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        kind = payload["type"]
        with closing(self._dial(self.timeout)) as sock:
            try:
                sock.sendall(_encode(payload))
                response = _read_json(sock)
            except (OSError, ValueError) as exc:
                raise DaemonError(f"{kind}: {exc}") from exc
        if not isinstance(response, Mapping):
            raise DaemonError(f"{kind}: unexpected response {response!r}")
        return response

    def subscribe(self) -> Iterator[Event]:
        """Subscribe to the daemon's event stream.

        Connects and subscribes at once, raising DaemonError on failure, and
        returns an iterator over the events. Lines that do not decode are
        skipped; the iterator ends when the daemon disconnects, a line is
        too long, or ``close`` is called.
        """
        sock = self._dial(SUBSCRIBE_DIAL_TIMEOUT)
        try:
            sock.sendall(_encode({"type": TYPE_TUI_SUBSCRIBE}))
        except OSError as exc:
            sock.close()
            raise DaemonError(f"subscribe: {exc}") from exc
        sock.settimeout(None)
        with self._lock:
            previous, self._conn = self._conn, sock
        if previous is not None:
            _shut(previous)
        return self._events(sock)

    @staticmethod
    def _events(sock: socket.socket) -> Iterator[Event]:
        reader = sock.makefile("rb")
        try:
            while True:
                try:
                    line = reader.readline(MAX_EVENT_LINE + 1)
                except (OSError, ValueError):
                    return
                if not line:
                    return
                stripped = line.rstrip(b"\r\n")
                if len(stripped) > MAX_EVENT_LINE:
                    return
                try:
                    evt = event_from_dict(json.loads(stripped))
                except (ValueError, TypeError):
                    continue
                yield evt
        finally:
            reader.close()

    def fetch_config(self) -> ConfigResponse:
        """Fetch the daemon's effective configuration snapshot."""
        response = self._request({"type": TYPE_GET_CONFIG})
        try:
            return config_response_from_dict(response)
        except TypeError as exc:
            raise DaemonError(f"{TYPE_GET_CONFIG}: {exc}") from exc

    def fetch_pending(self) -> tuple[list[PendingEntry], bool]:
        """Fetch pending escalations and whether the daemon keeps an audit log."""
        response = self._request({"type": TYPE_LIST_PENDING})
        raw = response.get("pending") or []
        try:
            entries = [pending_entry_from_dict(item) for item in raw]
        except TypeError as exc:
            raise DaemonError(f"{TYPE_LIST_PENDING}: {exc}") from exc
        return entries, bool(response.get("audit_enabled", False))

    def complete_pending(self, project_hash: str, key: str, human_decision: str) -> None:
        """Resolve one escalation; human_decision is "approved" or "blocked"."""
        response = self._request(
            {
                "type": TYPE_COMPLETE_PENDING,
                "key": key,
                "project_hash": project_hash,
                "human_decision": human_decision,
            }
        )
        if not response.get("ok"):
            raise DaemonError(f"{TYPE_COMPLETE_PENDING}: {response.get('error', '')}")

    def close(self) -> None:
        """Disconnect the event subscription, if any."""
        with self._lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            _shut(conn)

    def __enter__(self) -> DaemonClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _shut(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    sock.close()