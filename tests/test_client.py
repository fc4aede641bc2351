import queue
import socket
import threading

import pytest

from zinx.client import Client, new_tls_client
from zinx.config import Config
from zinx.heartbeat import HEARTBEAT_DEFAULT_MSG_ID, HeartBeatOption
from zinx.router import BaseRouter, RouteError
from zinx.server import Server


class _PongRouter(BaseRouter):
    def handle(self, request):
        request.conn.send_msg(2, b"pong:" + request.data)


class _CollectRouter(BaseRouter):
    def __init__(self):
        self.received = queue.Queue()

    def handle(self, request):
        self.received.put((request.msg_id, request.data))


@pytest.fixture
def server():
    srv = Server(Config(host="127.0.0.1", tcp_port=0))
    srv.add_router(1, _PongRouter())
    srv.start()
    yield srv
    srv.stop()


def test_defaults():
    client = Client("127.0.0.1", 8999)
    assert client.name == "ZinxClientTcp"
    assert client.use_tls is False
    assert client.conn is None
    assert client.msg_handler.worker_pool_size == 0


def test_options_are_applied():
    client = Client("127.0.0.1", 8999, lambda c: setattr(c, "name", "custom"))
    assert client.name == "custom"


def test_tls_client_flag():
    client = new_tls_client("127.0.0.1", 8999)
    assert client.use_tls is True
    assert client.port == 8999


def test_duplicate_router_raises():
    client = Client("127.0.0.1", 8999)
    client.add_router(5, BaseRouter())
    with pytest.raises(RouteError):
        client.add_router(5, BaseRouter())


def test_heartbeat_registers_default_route():
    client = Client("127.0.0.1", 8999)
    client.start_heart_beat(1.0)
    assert client.heartbeat.msg_id == HEARTBEAT_DEFAULT_MSG_ID
    assert HEARTBEAT_DEFAULT_MSG_ID in client.msg_handler.apis


def test_heartbeat_with_option_uses_custom_route():
    client = Client("127.0.0.1", 8999)
    router = BaseRouter()
    client.start_heart_beat_with_option(
        1.0, HeartBeatOption(heartbeat_msg_id=1234, router=router)
    )
    assert client.heartbeat.msg_id == 1234
    assert client.msg_handler.apis[1234] is router


def test_connect_failure_reported_on_errors():
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    client = Client("127.0.0.1", port)
    client.start()
    err = client.errors.get(timeout=5)
    assert isinstance(err, OSError)
    assert client.conn is None


def test_round_trip_with_server(server):
    host, port = server.address
    collector = _CollectRouter()
    started = threading.Event()
    client = Client(host, port)
    client.on_conn_start = lambda conn: started.set()
    client.add_router(2, collector)
    client.start()
    try:
        assert started.wait(5)
        client.conn.send_msg(1, b"ping")
        assert collector.received.get(timeout=5) == (2, b"pong:ping")
    finally:
        client.stop()