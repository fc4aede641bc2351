"""TCP client that connects to a server and routes the messages it receives."""

from __future__ import annotations

import logging
import queue
import socket
import ssl
import threading
from typing import Any, Callable

from .chainbuilder import Interceptor
from .config import Config
from .connection import Connection
from .datapack import ZINX_DATA_PACK, new_pack
from .heartbeat import HeartBeatOption, HeartbeatChecker
from .msghandler import MsgHandler

__all__ = ["Client", "new_tls_client"]

log = logging.getLogger(__name__)

ClientOption = Callable[["Client"], Any]
ConnHook = Callable[[Any], Any]


class Client:
    """Connects to ``ip:port`` and hands received messages to its routers.

    Options are callables applied to the new client, in order. Connection
    failures are put on :attr:`errors` instead of being raised.
    """

    def __init__(self, ip: str, port: int, *options: ClientOption) -> None:
        self.name = "ZinxClientTcp"
        self.ip = ip
        self.port = port
        self.config = Config()
        self.msg_handler = MsgHandler(self.config, is_client=True)
        self.packet: Any = new_pack(ZINX_DATA_PACK, self.config.max_packet_size)
        # Optional interceptor added to the chain when the client starts.
        self.decoder: Interceptor | None = None
        self.use_tls = False
        self.on_conn_start: ConnHook | None = None
        self.on_conn_stop: ConnHook | None = None
        self.heartbeat: HeartbeatChecker | None = None
        self.errors: queue.Queue[BaseException] = queue.Queue()

        self._conn: Connection | None = None
        self._conn_lock = threading.Lock()
        self._exit: threading.Event | None = None

        for option in options:
            option(self)

    # -- connection --------------------------------------------------------

    @property
    def conn(self) -> Connection | None:
        """The current connection, or None before one is established."""
        with self._conn_lock:
            return self._conn

    def _set_conn(self, conn: Connection) -> None:
        with self._conn_lock:
            self._conn = conn

    def _dial(self) -> socket.socket:
        sock = socket.create_connection((self.ip, self.port))
        if not self.use_tls:
            return sock
        # The server's certificate is not verified.
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        try:
            return context.wrap_socket(sock, server_hostname=self.ip)
        except OSError:
            sock.close()
            raise

    def _run(self, exit_event: threading.Event) -> None:
        try:
            sock = self._dial()
        except OSError as exc:
            kind = "tls client" if self.use_tls else "client"
            log.error("%s connect to server failed, err:%s", kind, exc)
            self.errors.put(exc)
            return

        conn = Connection.for_client(self, sock)
        self._set_conn(conn)
        log.info(
            "[START] Zinx Client LocalAddr: %s, RemoteAddr: %s",
            conn.local_addr,
            conn.remote_addr,
        )
        if self.heartbeat is not None:
            self.heartbeat.bind_conn(conn)

        threading.Thread(target=conn.start, name="zinx-client-conn", daemon=True).start()
        exit_event.wait()
        log.info("client exit.")

    # -- lifecycle ---------------------------------------------------------

    def restart(self) -> None:
        """Connect again in a background thread."""
        exit_event = threading.Event()
        self._exit = exit_event
        threading.Thread(
            target=self._run, args=(exit_event,), name="zinx-client", daemon=True
        ).start()

    def start(self) -> None:
        """Add the decoder, if any, to the interceptors and connect."""
        if self.decoder is not None:
            self.msg_handler.add_interceptor(self.decoder)
        self.restart()

    def stop(self) -> None:
        """Stop the connection and the client."""
        conn = self.conn
        if conn is not None:
            log.info(
                "[STOP] Zinx Client LocalAddr: %s, RemoteAddr: %s",
                conn.local_addr,
                conn.remote_addr,
            )
            conn.stop()
        if self._exit is not None:
            self._exit.set()

    # -- routing -----------------------------------------------------------

    def add_router(self, msg_id: int, router: Any) -> None:
        """Bind a class-based router to a message id."""
        self.msg_handler.add_router(msg_id, router)

    def add_interceptor(self, interceptor: Interceptor) -> None:
        """Add an interceptor that every received request passes."""
        self.msg_handler.add_interceptor(interceptor)

    # -- heartbeat ---------------------------------------------------------

    def start_heart_beat(self, interval: float) -> None:
        """Send a heartbeat every ``interval`` seconds once connected."""
        checker = HeartbeatChecker(interval)
        self.add_router(checker.msg_id, checker.router)
        self.heartbeat = checker

    def start_heart_beat_with_option(
        self, interval: float, option: HeartBeatOption | None
    ) -> None:
        """Like :meth:`start_heart_beat`, with custom message, reaction and router."""
        checker = HeartbeatChecker(interval)
        if option is not None:
            checker.set_heartbeat_msg_func(option.make_msg)
            checker.set_on_remote_not_alive(option.on_remote_not_alive)
            checker.bind_router(option.heartbeat_msg_id, option.router)
        self.add_router(checker.msg_id, checker.router)
        self.heartbeat = checker


def new_tls_client(ip: str, port: int, *options: ClientOption) -> Client:
    """Create a client that connects over TLS without verifying the server."""
    client = Client(ip, port, *options)
    client.use_tls = True
    return client