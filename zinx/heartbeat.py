"""Periodic heartbeat sending and dead-peer detection for a connection."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from .router import BaseRouter

__all__ = [
    "HEARTBEAT_DEFAULT_MSG_ID",
    "HeartBeatOption",
    "HeartbeatDefaultRouter",
    "HeartbeatChecker",
    "heartbeat_default_handle",
    "make_default_msg",
    "not_alive_default",
]

log = logging.getLogger(__name__)

HEARTBEAT_DEFAULT_MSG_ID = 99999

HeartBeatMsgFunc = Callable[[Any], bytes]
OnRemoteNotAlive = Callable[[Any], None]
HeartBeatFunc = Callable[[Any], None]


@dataclass
class HeartBeatOption:
    """User settings for a heartbeat checker."""

    make_msg: HeartBeatMsgFunc | None = None
    on_remote_not_alive: OnRemoteNotAlive | None = None
    heartbeat_msg_id: int = HEARTBEAT_DEFAULT_MSG_ID
    router: Any = None
    router_slices: list[Callable[[Any], None]] = field(default_factory=list)


def _log_heartbeat(request: Any) -> None:
    log.debug(
        "Recv Heartbeat from %s, MsgID = %s, Data = %s",
        request.conn.remote_addr,
        request.msg_id,
        bytes(request.data).decode(errors="replace"),
    )


class HeartbeatDefaultRouter(BaseRouter):
    """Router that logs received heartbeats."""

    def handle(self, request: Any) -> None:
        """Log the heartbeat."""
        _log_heartbeat(request)


def heartbeat_default_handle(request: Any) -> None:
    """Handler that logs received heartbeats."""
    _log_heartbeat(request)


def make_default_msg(conn: Any) -> bytes:
    """Default heartbeat payload naming both ends of the connection."""
    return f"heartbeat [{conn.local_addr}->{conn.remote_addr}]".encode()


def not_alive_default(conn: Any) -> None:
    """Default reaction to a dead peer: stop the connection."""
    log.info("Remote connection %s is not alive, stop it", conn.remote_addr)
    conn.stop()


class HeartbeatChecker:
    """Sends a heartbeat every ``interval`` seconds while the peer is alive."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self.make_msg: HeartBeatMsgFunc = make_default_msg
        self.on_remote_not_alive: OnRemoteNotAlive = not_alive_default
        self.msg_id = HEARTBEAT_DEFAULT_MSG_ID
        self.router: Any = HeartbeatDefaultRouter()
        self.router_slices: list[Callable[[Any], None]] = [heartbeat_default_handle]
        self.beat_func: HeartBeatFunc | None = None
        self.conn: Any = None
        self._quit = threading.Event()
        self._thread: threading.Thread | None = None

    def set_on_remote_not_alive(self, func: OnRemoteNotAlive | None) -> None:
        """Replace the dead-peer reaction; None is ignored."""
        if func is not None:
            self.on_remote_not_alive = func

    def set_heartbeat_msg_func(self, func: HeartBeatMsgFunc | None) -> None:
        """Replace the heartbeat payload builder; None is ignored."""
        if func is not None:
            self.make_msg = func

    def set_heartbeat_func(self, beat_func: HeartBeatFunc | None) -> None:
        """Replace the whole heartbeat sending; None is ignored."""
        if beat_func is not None:
            self.beat_func = beat_func

    def bind_router(self, msg_id: int, router: Any) -> None:
        """Use a custom router and message id; the default id is refused."""
        if router is not None and msg_id != HEARTBEAT_DEFAULT_MSG_ID:
            self.msg_id = msg_id
            self.router = router

    def bind_router_slices(self, msg_id: int, *handlers: Callable[[Any], None]) -> None:
        """Add custom handlers under a message id; the default id is refused."""
        if handlers and msg_id != HEARTBEAT_DEFAULT_MSG_ID:
            self.msg_id = msg_id
            self.router_slices.extend(handlers)

    def _run(self) -> None:
        while not self._quit.wait(self.interval):
            try:
                self.check()
            except Exception:
                log.exception("heartbeat check failed")

    def start(self) -> None:
        """Begin checking in a background thread."""
        self._quit.clear()
        self._thread = threading.Thread(target=self._run, name="heartbeat", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the background checking."""
        log.info(
            "heartbeat checker stop, connID=%s", getattr(self.conn, "conn_id", None)
        )
        self._quit.set()

    def send_heartbeat_msg(self) -> None:
        """Send one heartbeat message on the bound connection."""
        msg = self.make_msg(self.conn)
        try:
            self.conn.send_msg(self.msg_id, msg)
        except Exception as exc:
            log.error(
                "send heartbeat msg error: %s, msgId=%s msg=%r", exc, self.msg_id, msg
            )
            raise

    def check(self) -> None:
        """Handle a dead peer, or send a heartbeat to a live one."""
        if self.conn is None:
            return
        if not self.conn.is_alive():
            self.on_remote_not_alive(self.conn)
        elif self.beat_func is not None:
            self.beat_func(self.conn)
        else:
            self.send_heartbeat_msg()

    def bind_conn(self, conn: Any) -> None:
        """Attach the checker to a connection and the connection to it."""
        self.conn = conn
        conn.set_heartbeat(self)

    def clone(self) -> HeartbeatChecker:
        """Copy the settings into a new checker with no connection."""
        other = HeartbeatChecker(self.interval)
        other.beat_func = self.beat_func
        other.make_msg = self.make_msg
        other.on_remote_not_alive = self.on_remote_not_alive
        other.msg_id = self.msg_id
        other.router = self.router
        other.router_slices = list(self.router_slices)
        return other