"""Registry of live connections keyed by their string id."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

__all__ = ["ConnectionNotFoundError", "ConnManager"]

log = logging.getLogger(__name__)


class ConnectionNotFoundError(LookupError):
    """Raised when no connection has the requested id."""


def _parse_id(text: str) -> int | None:
    return int(text) if text.isdigit() else None


class ConnManager:
    """Thread-safe map of connections, keyed by ``conn.conn_id_str``."""

    def __init__(self) -> None:
        self._connections: dict[str, Any] = {}
        self._lock = threading.Lock()

    def add(self, conn: Any) -> None:
        """Register a connection."""
        with self._lock:
            self._connections[conn.conn_id_str] = conn
        log.debug("connection add to ConnManager successfully: conn num = %d", len(self))

    def remove(self, conn: Any) -> None:
        """Forget a connection; unknown connections are ignored."""
        with self._lock:
            self._connections.pop(conn.conn_id_str, None)
        log.debug(
            "connection Remove ConnID=%s successfully: conn num = %d",
            conn.conn_id,
            len(self),
        )

    def get(self, conn_id: int) -> Any:
        """Return the connection with a numeric id."""
        return self.get_by_str(str(conn_id))

    def get_by_str(self, conn_id_str: str) -> Any:
        """Return the connection with a string id."""
        with self._lock:
            try:
                return self._connections[conn_id_str]
            except KeyError:
                raise ConnectionNotFoundError("connection not found") from None

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def _snapshot(self) -> list[tuple[str, Any]]:
        with self._lock:
            return list(self._connections.items())

    def clear_conn(self) -> None:
        """Stop every connection; stopping removes each from the registry."""
        for _, conn in self._snapshot():
            conn.stop()
        log.info("Clear All Connections successfully: conn num = %d", len(self))

    def all_conn_ids(self) -> list[int]:
        """Numeric ids of all connections; ids that are not numbers are skipped."""
        ids = []
        for key in self.all_conn_id_strs():
            conn_id = _parse_id(key)
            if conn_id is None:
                log.info("GetAllConnID Id: %r is not a number", key)
            else:
                ids.append(conn_id)
        return ids

    def all_conn_id_strs(self) -> list[str]:
        """String ids of all connections."""
        with self._lock:
            return list(self._connections)

    def range(self, callback: Callable[[int, Any, Any], None], args: Any) -> None:
        """Call ``callback(conn_id, conn, args)`` for every connection.

        Errors are logged and iteration continues; if the last call raised,
        its error is raised again.
        """
        error: Exception | None = None
        for key, conn in self._snapshot():
            conn_id = _parse_id(key) or 0
            try:
                callback(conn_id, conn, args)
                error = None
            except Exception as exc:
                log.info("Range key: %s, v: %r, error: %s", key, conn, exc)
                error = exc
        if error is not None:
            raise error

    def range_str(self, callback: Callable[[str, Any, Any], None], args: Any) -> None:
        """Call ``callback(conn_id_str, conn, args)`` for every connection.

        Errors are handled as in :meth:`range`.
        """
        error: Exception | None = None
        for key, conn in self._snapshot():
            try:
                callback(conn.conn_id_str, conn, args)
                error = None
            except Exception as exc:
                log.info("Range2 key: %s, v: %r, error: %s", key, conn, exc)
                error = exc
        if error is not None:
            raise error