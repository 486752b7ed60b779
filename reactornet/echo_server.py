"""An echo server: every byte a client sends is written straight back to it."""

from __future__ import annotations

import argparse
from typing import Any, List, Optional

from .buffer import Buffer
from .event_loop import EventLoop
from .inet_address import InetAddress
from .logger import log_info
from .tcp_connection import TcpConnection
from .tcp_server import TcpServer
from .timestamp import Timestamp

DEFAULT_PORT = 8080
DEFAULT_THREADS = 3


class EchoServer:
    """A :class:`TcpServer` that logs connections and echoes every message."""

    def __init__(
        self,
        loop: Any,
        addr: InetAddress,
        name: str,
        num_threads: int = DEFAULT_THREADS,
    ) -> None:
        self._loop = loop
        self._server = TcpServer(loop, addr, name)
        self._server.connection_callback = self._on_connection
        self._server.message_callback = self._on_message
        self._server.set_thread_num(num_threads)

    @property
    def server(self) -> TcpServer:
        """The underlying TCP server."""
        return self._server

    def start(self) -> None:
        self._server.start()

    def __enter__(self) -> "EchoServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self._server.close()

    def _on_connection(self, conn: TcpConnection) -> None:
        state = "UP" if conn.connected() else "DOWN"
        log_info("Connection %s : %s", state, conn.peer_address.to_ip_port())

    def _on_message(self, conn: TcpConnection, buf: Buffer, receive_time: Timestamp) -> None:
        conn.send(buf.retrieve_all_as_bytes())


def main(argv: Optional[List[str]] = None) -> int:
    """Run an echo server until interrupted."""
    parser = argparse.ArgumentParser(prog="reactornet-echo", description="TCP echo server")
    parser.add_argument("--ip", default="127.0.0.1", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    parser.add_argument(
        "--threads", type=int, default=DEFAULT_THREADS, help="number of I/O loop threads"
    )
    args = parser.parse_args(argv)

    addr = InetAddress(args.port, args.ip)
    with EventLoop() as loop, EchoServer(loop, addr, "EchoServer", args.threads) as server:
        server.start()
        try:
            loop.loop()
        except KeyboardInterrupt:
            pass
    return 0