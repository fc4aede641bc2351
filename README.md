# zinx

A lightweight framework for building TCP servers and clients that exchange
length-prefixed binary messages. Incoming bytes are framed into messages,
passed through a chain of interceptors and dispatched to routers by message
id, either on a short-lived thread or through a pool of worker threads.

## Features

- Message framing with an 8-byte header (`zinx.datapack`):
  `DataPack` writes message id then data length, big-endian (the default);
  `DataPackLtv` writes data length then message id, little-endian.
  `new_pack(kind, max_packet_size)` picks one by `ZINX_DATA_PACK` or
  `ZINX_DATA_PACK_OLD`; `unpack` raises `PacketTooLargeError` when the
  declared length exceeds a non-zero `max_packet_size`.
- Two routing styles (`zinx.router`):
  - class-based routers built on `BaseRouter`, with `pre_handle`, `handle`
    and `post_handle` steps run by `Request.call`;
  - handler chains (`RouterSlices`) with shared handlers through `use` and
    message-id ranges through `group` / `GroupRouter`. Duplicate ids or ids
    outside a group's range raise `RouteError`.
- Requests (`zinx.request.Request`) carry context values (`set` / `get`),
  can `abort` the remaining handlers or `goto` a router step, and can be
  `copy`-ed for use outside the handler chain. `RequestPool` reuses request
  objects when `Config.request_pool_mode` is on.
- Interceptor chains (`zinx.chainbuilder.Interceptor`, `Chain`,
  `ChainBuilder`) in front of the message handler.
- Worker assignment in three modes (`zinx.config.WorkerMode`): `HASH`
  (connection id modulo pool size), `BIND` (one worker per connection) and
  `DYNAMIC_BIND` (a pool plus temporary extra workers), handled by
  `zinx.msghandler.MsgHandler`.
- Connections (`zinx.connection.Connection`) with direct sends
  (`send`, `send_msg`), queued and buffered sends (`send_to_queue`,
  `send_buff_msg`), per-connection properties and close callbacks.
  Sending on a connection that is not running raises `ConnectionClosedError`.
- Connection registry (`zinx.connmanager.ConnManager`); a missing id raises
  `ConnectionNotFoundError`.
- Heartbeats (`zinx.heartbeat.HeartbeatChecker`, `HeartBeatOption`) with
  custom payloads, routers and reactions to peers that went silent for longer
  than `Config.heartbeat_max` seconds.
- Accept back-off (`zinx.acceptdelay.AcceptDelay`): 5 ms, doubling, capped at 1 s.
- `zinx.defaultrouterfunc.router_recovery` logs exceptions raised by later
  handlers instead of letting them escape; `router_time` prints how long the
  rest of the chain took.

## Installation

```
pip install .
```

## A small server

```python
from zinx.config import Config
from zinx.router import BaseRouter
from zinx.server import Server


class PingRouter(BaseRouter):
    def handle(self, request):
        request.conn.send_msg(1, b"ping...ping...ping")


server = Server(Config(host="127.0.0.1", tcp_port=8999))
server.add_router(1, PingRouter())
server.serve()  # runs until SIGINT or SIGTERM, then stops
```

`Server.start` returns as soon as the port is bound (`server.address` gives
the bound host and port) and `Server.stop` closes every connection and the
listener. Options are callables applied to the new server, for example
`zinx.options.with_packet(pack)`.

With handler chains instead of routers:

```python
from zinx.config import Config
from zinx.server import new_default_router_slices_server


def greet(request):
    request.set("greeting", "hello")


def reply(request):
    request.conn.send_msg(1, request.get("greeting").encode())


server = new_default_router_slices_server(Config(router_slices_mode=True))
server.add_router_slices(1, greet, reply)
server.serve()
```

`new_default_router_slices_server` installs `router_recovery` as a shared
handler, so an exception raised in a handler is logged and does not end the
connection. On a server, `add_router` is refused in router-slices mode and
`add_router_slices`, `group` and `use` are refused outside it (`RuntimeError`).

## A client

```python
from zinx.client import Client
from zinx.options import with_name_client
from zinx.router import BaseRouter


class PrintRouter(BaseRouter):
    def handle(self, request):
        print(request.msg_id, request.data)


client = Client("127.0.0.1", 8999, with_name_client("demo"))
client.add_router(1, PrintRouter())
client.start()
# ... client.conn.send_msg(1, b"hello") once connected ...
client.stop()
```

The client connects in a background thread; a failed connection is put on
`client.errors` rather than raised. `new_tls_client` connects over TLS without
verifying the server's certificate. `with_packet_client` sets a custom packet
format.

## Packing messages yourself

```python
from zinx.datapack import HEAD_LEN, ZINX_DATA_PACK, new_pack
from zinx.message import new_msg_package

pack = new_pack(ZINX_DATA_PACK, 4096)
wire = pack.pack(new_msg_package(1, b"hello"))
head = pack.unpack(wire[:HEAD_LEN])  # message id and data length only
payload = wire[HEAD_LEN:HEAD_LEN + head.data_len]
```

## What it does not do

- Only plain TCP (optionally TLS) listeners are provided. Setting
  `Config.mode` to `ServerMode.WEBSOCKET` or `ServerMode.KCP` makes
  `Server.start` raise `ValueError`; the `ws_*` and `kcp_port` settings are
  not used.
- There is no registry for pushing messages to connections by an id of the
  application's choosing; use `ConnManager` and each connection's
  `send_msg` / `send_buff_msg` directly.
- There is no command-line program; the package is a library.

## Running the tests

```
pip install ".[test]"
pytest
```