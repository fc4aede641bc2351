"""Lightweight TCP server and client framework with message routing, worker pools and heartbeats."""

__version__ = "0.1.0"

__all__ = [
    "acceptdelay",
    "callbacks",
    "chainbuilder",
    "client",
    "config",
    "connection",
    "connmanager",
    "datapack",
    "defaultrouterfunc",
    "heartbeat",
    "message",
    "msghandler",
    "options",
    "request",
    "router",
    "server",
]