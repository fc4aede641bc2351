"""TCP server that accepts connections and routes their messages."""

from __future__ import annotations

import itertools
import logging
import signal
import socket
import ssl
import threading
from typing import Any, Callable

from .acceptdelay import AcceptDelay
from .chainbuilder import Interceptor
from .config import Config, ServerMode
from .connection import Connection
from .connmanager import ConnManager
from .datapack import ZINX_DATA_PACK, new_pack
from .defaultrouterfunc import router_recovery
from .heartbeat import HeartBeatOption, HeartbeatChecker
from .msghandler import MsgHandler
from .router import GroupRouter, RouterSlices

__all__ = ["Server", "new_default_router_slices_server"]

log = logging.getLogger(__name__)

# How often a blocked accept wakes up to look for a stop request, in seconds.
_ACCEPT_POLL = 0.2
# How long stop waits for the listener thread, in seconds.
_STOP_JOIN_TIMEOUT = 5.0

RouterHandler = Callable[[Any], None]
ServerOption = Callable[["Server"], Any]
ConnHook = Callable[[Any], Any]


class Server:
    """Listens for TCP connections and hands their messages to a message handler.

    Options are callables applied to the new server, in order.
    """

    def __init__(self, config: Config | None = None, *options: ServerOption) -> None:
        cfg = config if config is not None else Config()
        self.config = cfg
        self.name = cfg.name
        self.host = cfg.host
        self.port = cfg.tcp_port
        self.router_slices_mode = cfg.router_slices_mode
        self.request_pool_mode = cfg.request_pool_mode
        self.msg_handler = MsgHandler(cfg)
        self.conn_mgr = ConnManager()
        self.on_conn_start: ConnHook | None = None
        self.on_conn_stop: ConnHook | None = None
        self.packet: Any = new_pack(ZINX_DATA_PACK, cfg.max_packet_size)
        self.heartbeat: HeartbeatChecker | None = None
        self.accept_delay = AcceptDelay()

        self._ids = itertools.count(1)
        self._id_lock = threading.Lock()
        self._listener: socket.socket | None = None
        self._listener_lock = threading.Lock()
        self._listen_thread: threading.Thread | None = None
        self._exit = threading.Event()

        for option in options:
            option(self)

        log.info("server config: %s", cfg)

    # -- addresses ---------------------------------------------------------

    @property
    def address(self) -> tuple[str, int]:
        """Host and port the listener is bound to."""
        with self._listener_lock:
            listener = self._listener
        if listener is None:
            raise RuntimeError("server is not listening")
        host, port = listener.getsockname()[:2]
        return host, port

    def _next_conn_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    # -- listening ---------------------------------------------------------

    def _open_listener(self) -> socket.socket:
        infos = socket.getaddrinfo(
            self.host or None,
            self.port,
            type=socket.SOCK_STREAM,
            flags=socket.AI_PASSIVE,
        )
        family, _, _, _, sockaddr = infos[0]
        listener = socket.create_server(sockaddr, family=family)
        cfg = self.config
        if cfg.cert_file and cfg.private_key_file:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            context.load_cert_chain(cfg.cert_file, cfg.private_key_file)
            listener = context.wrap_socket(listener, server_side=True)
        listener.settimeout(_ACCEPT_POLL)
        with self._listener_lock:
            self._listener = listener
        return listener

    def _accept_loop(self, listener: socket.socket) -> None:
        max_conn = self.config.max_conn
        while not self._exit.is_set():
            if len(self.conn_mgr) >= max_conn:
                log.info(
                    "Exceeded the maxConnNum:%d, Wait:%s",
                    max_conn,
                    self.accept_delay.duration,
                )
                self.accept_delay.delay()
                continue
            try:
                sock, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._exit.is_set():
                    log.error("Listener closed")
                    return
                log.error("Accept err: %s", exc)
                self.accept_delay.delay()
                continue

            self.accept_delay.reset()
            sock.settimeout(None)
            conn = Connection.for_server(self, sock, self._next_conn_id())
            threading.Thread(
                target=self.start_conn,
                args=(conn,),
                name=f"zinx-conn-{conn.conn_id}",
                daemon=True,
            ).start()

    def listen_tcp_conn(self) -> None:
        """Accept connections until the server stops; blocks the calling thread."""
        log.info(
            "[START] TCP Server name: %s,listener at IP: %s, Port %d is starting",
            self.name,
            self.host,
            self.port,
        )
        with self._listener_lock:
            listener = self._listener
        if listener is None:
            try:
                listener = self._open_listener()
            except socket.gaierror as exc:
                log.error("[START] resolve tcp addr err: %s", exc)
                return

        accepter = threading.Thread(
            target=self._accept_loop, args=(listener,), name="zinx-accept", daemon=True
        )
        accepter.start()
        self._exit.wait()
        try:
            listener.close()
        except OSError as exc:
            log.error("listener close err: %s", exc)
        with self._listener_lock:
            if self._listener is listener:
                self._listener = None
        accepter.join(_STOP_JOIN_TIMEOUT)

    # -- lifecycle ---------------------------------------------------------

    def start_conn(self, conn: Any) -> None:
        """Attach a heartbeat checker, if any, and run the connection."""
        if self.heartbeat is not None:
            self.heartbeat.clone().bind_conn(conn)
        conn.start()

    def start(self) -> None:
        """Start the workers and the listener; returns once the port is bound."""
        mode = self.config.mode
        if mode != ServerMode.TCP:
            raise ValueError(f"server mode {mode.value!r} is not supported")
        self._exit.clear()
        self.msg_handler.start_worker_pool()
        self._open_listener()
        self._listen_thread = threading.Thread(
            target=self.listen_tcp_conn, name="zinx-listen", daemon=True
        )
        self._listen_thread.start()

    def stop(self) -> None:
        """Stop every connection and the listener."""
        log.info("[STOP] Zinx server , name %s", self.name)
        self.conn_mgr.clear_conn()
        self._exit.set()
        thread = self._listen_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(_STOP_JOIN_TIMEOUT)
        self._listen_thread = None

    def serve(self) -> None:
        """Start, then run until SIGINT or SIGTERM arrives or the server stops."""
        self.start()
        received: list[int] = []
        previous: dict[int, Any] = {}
        if threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGINT, signal.SIGTERM):
                previous[signum] = signal.signal(
                    signum, lambda number, _frame: received.append(number)
                )
        try:
            while not received and not self._exit.wait(0.1):
                pass
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)
        if received:
            log.info(
                "[SERVE] Zinx server , name %s, Serve Interrupt, signal = %s",
                self.name,
                signal.Signals(received[0]).name,
            )
            self.stop()

    # -- routing -----------------------------------------------------------

    def add_router(self, msg_id: int, router: Any) -> None:
        """Bind a class-based router; not allowed in router-slices mode."""
        if self.router_slices_mode:
            raise RuntimeError("Server RouterSlicesMode is true")
        self.msg_handler.add_router(msg_id, router)

    def add_router_slices(self, msg_id: int, *handlers: RouterHandler) -> RouterSlices:
        """Bind a handler chain; only allowed in router-slices mode."""
        if not self.router_slices_mode:
            raise RuntimeError("Server RouterSlicesMode is false")
        return self.msg_handler.add_router_slices(msg_id, *handlers)

    def group(self, start: int, end: int, *handlers: RouterHandler) -> GroupRouter:
        """Create a route group; only allowed in router-slices mode."""
        if not self.router_slices_mode:
            raise RuntimeError("Server RouterSlicesMode is false")
        return self.msg_handler.group(start, end, *handlers)

    def use(self, *handlers: RouterHandler) -> RouterSlices:
        """Add shared handlers; only allowed in router-slices mode."""
        if not self.router_slices_mode:
            raise RuntimeError("Server RouterSlicesMode is false")
        return self.msg_handler.use(*handlers)

    def add_interceptor(self, interceptor: Interceptor) -> None:
        """Add an interceptor that every request passes before dispatch."""
        self.msg_handler.add_interceptor(interceptor)

    # -- heartbeat ---------------------------------------------------------

    def _register_heartbeat(self, checker: HeartbeatChecker) -> None:
        if self.router_slices_mode:
            self.add_router_slices(checker.msg_id, *checker.router_slices)
        else:
            self.add_router(checker.msg_id, checker.router)
        self.heartbeat = checker

    def start_heart_beat(self, interval: float) -> None:
        """Send heartbeats every ``interval`` seconds on each new connection."""
        self._register_heartbeat(HeartbeatChecker(interval))

    def start_heart_beat_with_option(
        self, interval: float, option: HeartBeatOption | None
    ) -> None:
        """Like :meth:`start_heart_beat`, with custom messages, reaction and routes."""
        checker = HeartbeatChecker(interval)
        if option is not None:
            checker.set_heartbeat_msg_func(option.make_msg)
            checker.set_on_remote_not_alive(option.on_remote_not_alive)
            if self.router_slices_mode:
                checker.bind_router_slices(option.heartbeat_msg_id, *option.router_slices)
            else:
                checker.bind_router(option.heartbeat_msg_id, option.router)
        self._register_heartbeat(checker)


def new_default_router_slices_server(
    config: Config | None = None, *options: ServerOption
) -> Server:
    """Create a router-slices server whose routes all start with panic recovery."""
    if config is None:
        config = Config(router_slices_mode=True)
    elif not config.router_slices_mode:
        raise ValueError("RouterSlicesMode is false")
    server = Server(config, *options)
    server.use(router_recovery)
    return server