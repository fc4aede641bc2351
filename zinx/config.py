"""Runtime configuration for servers and clients."""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = ["WorkerMode", "ServerMode", "Config"]


class WorkerMode(str, enum.Enum):
    """How connections are assigned to workers."""

    HASH = "Hash"
    BIND = "Bind"
    DYNAMIC_BIND = "DynamicBind"


class ServerMode(str, enum.Enum):
    """Which listeners a server starts."""

    TCP = "tcp"
    WEBSOCKET = "websocket"
    KCP = "kcp"


@dataclass
class Config:
    """Settings shared by the server, client, connections and message handler."""

    name: str = "ZinxServerApp"
    version: str = "V1.0"
    host: str = "0.0.0.0"
    tcp_port: int = 8999
    ws_port: int = 9000
    ws_path: str = "/"
    kcp_port: int = 9001
    mode: ServerMode = ServerMode.TCP
    max_conn: int = 12000
    max_packet_size: int = 4096
    worker_pool_size: int = 10
    max_worker_task_len: int = 1024
    max_msg_chan_len: int = 1024
    io_read_buff_size: int = 1024
    worker_mode: WorkerMode = WorkerMode.HASH
    router_slices_mode: bool = False
    request_pool_mode: bool = False
    heartbeat_max: float = 10.0
    cert_file: str = ""
    private_key_file: str = ""

    def __post_init__(self) -> None:
        self.mode = ServerMode(self.mode)
        self.worker_mode = WorkerMode(self.worker_mode)
        for field_name in (
            "max_conn",
            "max_packet_size",
            "worker_pool_size",
            "max_worker_task_len",
            "max_msg_chan_len",
            "io_read_buff_size",
        ):
            if getattr(self, field_name) < 0:
                raise ValueError(f"{field_name} must not be negative")

    def heartbeat_max_duration(self) -> float:
        """Seconds of silence after which a peer is considered dead."""
        return float(self.heartbeat_max)