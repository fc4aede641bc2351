"""A socket connection: reading, dispatching, buffered and queued writing."""

from __future__ import annotations

import logging
import queue
import socket
import threading
import time
from typing import Any, Callable

from .callbacks import Callbacks
from .config import Config
from .message import Message, new_message, new_message_by_msg_id, new_msg_package
from .msghandler import MsgHandler

__all__ = ["ConnectionClosedError", "Connection", "DEFAULT_SEND_TIMEOUT"]

log = logging.getLogger(__name__)

# Size of the write buffer; a write that would overflow it flushes first.
_WRITE_BUFFER_SIZE = 16 * 1024
# How often the writer flushes the write buffer, in seconds.
_FLUSH_INTERVAL = 0.01
DEFAULT_SEND_TIMEOUT = 0.005

_QUEUE_CLOSED = object()

ConnHook = Callable[["Connection"], Any]


class ConnectionClosedError(ConnectionError):
    """Raised when data is sent on a connection that is not running."""


def _format_addr(addr: Any) -> str:
    if isinstance(addr, tuple) and len(addr) >= 2:
        host, port = addr[0], addr[1]
        if ":" in str(host):
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    if isinstance(addr, bytes):
        return addr.decode(errors="replace")
    return str(addr)


def _sock_addr(getter: Callable[[], Any]) -> str:
    try:
        return _format_addr(getter())
    except OSError:
        return ""


class _PacketFramer:
    """Splits a byte stream into messages using a packet's header format."""

    def __init__(self, packet: Any) -> None:
        self.packet = packet
        self._buffer = bytearray()

    def decode(self, chunk: bytes) -> list[Message]:
        self._buffer.extend(chunk)
        head_len = self.packet.head_len
        messages = []
        while len(self._buffer) >= head_len:
            head = self.packet.unpack(bytes(self._buffer[:head_len]))
            total = head_len + head.data_len
            if len(self._buffer) < total:
                break
            data = bytes(self._buffer[head_len:total])
            del self._buffer[:total]
            messages.append(new_message_by_msg_id(head.msg_id, head.data_len, data))
        return messages


class Connection:
    """One socket connection bound to a message handler.

    The connection is closed until :meth:`start` runs; :meth:`start` blocks
    until :meth:`stop` is called or the peer goes away, then cleans up.
    """

    def __init__(
        self,
        sock: socket.socket,
        name: str,
        msg_handler: Any,
        packet: Any,
        config: Config | None = None,
        conn_id: int | None = None,
        conn_manager: Any = None,
        on_conn_start: ConnHook | None = None,
        on_conn_stop: ConnHook | None = None,
    ) -> None:
        self.sock = sock
        self.name = name
        self.msg_handler = msg_handler
        self.packet = packet
        self.config = config if config is not None else Config()
        if conn_id is None:
            self.conn_id = 0
            self.conn_id_str = ""
        else:
            self.conn_id = conn_id
            self.conn_id_str = str(conn_id)
        self.conn_manager = conn_manager
        self.on_conn_start = on_conn_start
        self.on_conn_stop = on_conn_stop
        self.worker_id = 0
        self.local_addr = _sock_addr(sock.getsockname)
        self.remote_addr = _sock_addr(sock.getpeername)
        # Splits the incoming stream into messages; None passes raw reads on.
        self.frame_decoder: Any = _PacketFramer(packet) if packet is not None else None

        self._started = False
        self._stop_event = threading.Event()
        self._heartbeat: Any = None
        self._last_activity = 0.0

        self._write_buffer = bytearray()
        self._write_lock = threading.Lock()
        self._queue: queue.Queue | None = None
        self._queue_lock = threading.Lock()

        self._properties: dict[str, Any] = {}
        self._property_lock = threading.Lock()

        self._close_callbacks = Callbacks()
        self._close_callback_lock = threading.Lock()

    # -- construction ------------------------------------------------------

    @classmethod
    def for_server(cls, server: Any, sock: socket.socket, conn_id: int) -> Connection:
        """Create a connection that inherits a server's settings and registers with it."""
        conn = cls(
            sock,
            server.name,
            server.msg_handler,
            server.packet,
            server.config,
            conn_id,
            server.conn_mgr,
            server.on_conn_start,
            server.on_conn_stop,
        )
        server.conn_mgr.add(conn)
        return conn

    @classmethod
    def for_client(cls, client: Any, sock: socket.socket) -> Connection:
        """Create a connection that inherits a client's settings."""
        return cls(
            sock,
            client.name,
            client.msg_handler,
            client.packet,
            client.config,
            None,
            None,
            client.on_conn_start,
            client.on_conn_stop,
        )

    # -- state -------------------------------------------------------------

    def _is_closed(self) -> bool:
        return not self._started or self._stop_event.is_set()

    def _update_activity(self) -> None:
        self._last_activity = time.monotonic()

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Run the connection until it stops; blocks the calling thread."""
        self._started = True
        try:
            self._call_hook(self.on_conn_start, "CallOnConnStart")
            if self._heartbeat is not None:
                self._heartbeat.start()
                self._update_activity()
            self.worker_id = self._use_worker()
            threading.Thread(
                target=self._read_loop, name=f"zinx-reader-{self.conn_id}", daemon=True
            ).start()
        except Exception as exc:
            log.error("Connection Start() error: %s", exc)
            return

        self._stop_event.wait()
        self._finalize()
        self._free_worker()

    def stop(self) -> None:
        """Ask the connection to stop."""
        self._stop_event.set()

    def _call_hook(self, hook: ConnHook | None, label: str) -> None:
        if hook is not None:
            log.info("ZINX %s....", label)
            hook(self)

    def _use_worker(self) -> int:
        if isinstance(self.msg_handler, MsgHandler):
            return self.msg_handler.use_worker(self)
        log.error("useWorker failed, message handler has no workers")
        return 0

    def _free_worker(self) -> None:
        if isinstance(self.msg_handler, MsgHandler):
            self.msg_handler.free_worker(self)
        else:
            log.error("freeWorker failed, message handler has no workers")

    def _finalize(self) -> None:
        try:
            self._call_hook(self.on_conn_stop, "CallOnConnStop")
        except Exception as exc:
            log.error("OnConnStop hook error: %s", exc)

        if self._heartbeat is not None:
            self._heartbeat.stop()

        try:
            self.sock.close()
        except OSError:
            pass

        if self.conn_manager is not None:
            self.conn_manager.remove(self)

        threading.Thread(target=self._run_close_callbacks, daemon=True).start()
        log.info("Conn Stop()...ConnID = %d", self.conn_id)

    def _run_close_callbacks(self) -> None:
        try:
            self.invoke_close_callbacks()
        except Exception as exc:
            log.error("Conn finalizer panic: %s", exc)

    # -- reading -----------------------------------------------------------

    def _messages(self, chunk: bytes) -> list[Message]:
        if self.frame_decoder is None:
            return [new_message(len(chunk), chunk)]
        return self.frame_decoder.decode(chunk)

    def _read_loop(self) -> None:
        log.info("[Reader Goroutine is running]")
        size = max(1, self.config.io_read_buff_size)
        try:
            while not self._stop_event.is_set():
                try:
                    chunk = self.sock.recv(size)
                except OSError as exc:
                    log.error("read msg error = %s", exc)
                    return
                if not chunk:
                    log.error("read msg: connection closed by peer")
                    return
                log.debug("read buffer %s", chunk.hex())
                if self._heartbeat is not None:
                    self._update_activity()
                for msg in self._messages(chunk):
                    request = self.msg_handler.request_pool.acquire(self, msg)
                    self.msg_handler.execute(request)
        except Exception as exc:
            log.error("connID=%d, panic err=%s", self.conn_id, exc)
        finally:
            log.info("%s [conn Reader exit!]", self.remote_addr)
            self.stop()

    # -- writing -----------------------------------------------------------

    def flush(self) -> None:
        """Write out everything held in the write buffer."""
        if self._is_closed():
            raise ConnectionClosedError("connection closed when flush data")
        with self._write_lock:
            self._flush_locked()

    def _flush_locked(self) -> None:
        if self._write_buffer:
            data = bytes(self._write_buffer)
            self._write_buffer.clear()
            self.sock.sendall(data)

    def _send_buf(self, data: bytes) -> None:
        if self._is_closed():
            raise ConnectionClosedError("connection closed when send msg")
        with self._write_lock:
            if len(self._write_buffer) + len(data) > _WRITE_BUFFER_SIZE:
                self._flush_locked()
            if len(data) >= _WRITE_BUFFER_SIZE:
                self.sock.sendall(data)
            else:
                self._write_buffer.extend(data)

    def send(self, data: bytes) -> None:
        """Write data straight to the socket."""
        if self._is_closed():
            raise ConnectionClosedError("connection closed when send msg")
        try:
            self.sock.sendall(data)
        except OSError as exc:
            log.error("SendMsg err data = %r, err = %s", data, exc)
            raise

    def _write_loop(self, send_queue: queue.Queue) -> None:
        log.info("Writer Goroutine is running")
        try:
            while not self._stop_event.is_set():
                try:
                    data = send_queue.get(timeout=_FLUSH_INTERVAL)
                except queue.Empty:
                    try:
                        self.flush()
                    except (OSError, ConnectionClosedError) as exc:
                        log.error("Flush Buff Data error: %s Conn Writer exit", exc)
                        return
                    continue
                if data is _QUEUE_CLOSED:
                    log.error("msgBuffChan is Closed")
                    return
                try:
                    self._send_buf(data)
                except (OSError, ConnectionClosedError) as exc:
                    log.error("Send Buff Data error: %s Conn Writer exit", exc)
                    return
        finally:
            log.info("%s [conn Writer exit!]", self.remote_addr)
            try:
                self.flush()
            except (OSError, ConnectionClosedError):
                pass

    def _ensure_writer(self) -> queue.Queue:
        with self._queue_lock:
            if self._queue is None:
                self._queue = queue.Queue(self.config.max_msg_chan_len)
                threading.Thread(
                    target=self._write_loop,
                    args=(self._queue,),
                    name=f"zinx-writer-{self.conn_id}",
                    daemon=True,
                ).start()
            return self._queue

    def send_to_queue(self, data: bytes, timeout: float = DEFAULT_SEND_TIMEOUT) -> None:
        """Queue data for the writer thread; raises TimeoutError if the queue stays full."""
        if self._is_closed():
            raise ConnectionClosedError("Connection closed when send buff msg")
        if data is None:
            log.error("Pack data is nil")
            raise ValueError("Pack data is nil")
        send_queue = self._ensure_writer()
        try:
            send_queue.put(data, timeout=timeout)
        except queue.Full:
            raise TimeoutError("send buff msg timeout") from None

    def _pack(self, msg_id: int, data: bytes) -> bytes:
        try:
            return self.packet.pack(new_msg_package(msg_id, data))
        except (ValueError, TypeError) as exc:
            log.error("Pack error msg ID = %d", msg_id)
            raise ValueError("Pack error msg") from exc

    def send_msg(self, msg_id: int, data: bytes) -> None:
        """Pack a message and write it straight to the socket."""
        if self._is_closed():
            raise ConnectionClosedError("connection closed when send msg")
        self.send(self._pack(msg_id, data))

    def send_buff_msg(
        self, msg_id: int, data: bytes, timeout: float = DEFAULT_SEND_TIMEOUT
    ) -> None:
        """Pack a message and queue it for the writer thread."""
        self.send_to_queue(self._pack(msg_id, data), timeout)

    # -- properties --------------------------------------------------------

    def set_property(self, key: str, value: Any) -> None:
        """Store a value on the connection."""
        with self._property_lock:
            self._properties[key] = value

    def get_property(self, key: str) -> Any:
        """Return a stored value; raises KeyError if there is none."""
        with self._property_lock:
            try:
                return self._properties[key]
            except KeyError:
                raise KeyError("no property found") from None

    def remove_property(self, key: str) -> None:
        """Forget a stored value; unknown keys are ignored."""
        with self._property_lock:
            self._properties.pop(key, None)

    # -- heartbeat ---------------------------------------------------------

    def is_alive(self) -> bool:
        """Whether the connection runs and the peer was active recently."""
        if self._is_closed():
            return False
        elapsed = time.monotonic() - self._last_activity
        return elapsed < self.config.heartbeat_max_duration()

    def set_heartbeat(self, checker: Any) -> None:
        """Attach the heartbeat checker started and stopped with the connection."""
        self._heartbeat = checker

    # -- close callbacks ---------------------------------------------------

    def add_close_callback(self, handler: Any, key: Any, func: Callable[[], Any]) -> None:
        """Register a function run after the connection closes; ignored while closed."""
        if self._is_closed():
            return
        with self._close_callback_lock:
            self._close_callbacks.add(handler, key, func)

    def remove_close_callback(self, handler: Any, key: Any) -> None:
        """Unregister a close callback; ignored while closed."""
        if self._is_closed():
            return
        with self._close_callback_lock:
            self._close_callbacks.remove(handler, key)

    def invoke_close_callbacks(self) -> None:
        """Run every registered close callback in order."""
        with self._close_callback_lock:
            self._close_callbacks.invoke()