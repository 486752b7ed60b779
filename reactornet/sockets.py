"""Thin ownership wrapper around a TCP socket, with the options a server needs."""

from __future__ import annotations

import contextlib
import socket
from typing import Tuple

from .inet_address import InetAddress
from .logger import log_error, log_fatal

LISTEN_BACKLOG = 1024


def create_nonblocking() -> socket.socket:
    """Create a non-blocking, close-on-exec IPv4 TCP socket."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)
    except OSError as exc:
        log_fatal("listen socket create err:%d", exc.errno or 0)
        raise
    sock.setblocking(False)
    return sock


class Socket:
    """Owns one socket and closes it when closed or when the context exits."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    @property
    def fd(self) -> int:
        return self._sock.fileno()

    @property
    def sock(self) -> socket.socket:
        return self._sock

    def bind_address(self, local_addr: InetAddress) -> None:
        """Bind to ``local_addr``; failure is fatal."""
        try:
            self._sock.bind(local_addr.sockaddr())
        except OSError:
            log_fatal("bind sockfd:%d fail", self.fd)

    def listen(self) -> None:
        """Start listening; failure is fatal."""
        try:
            self._sock.listen(LISTEN_BACKLOG)
        except OSError:
            log_fatal("listen sockfd:%d fail", self.fd)

    def accept(self) -> Tuple[socket.socket, InetAddress]:
        """Accept one pending connection as a non-blocking socket.

        Raises ``OSError`` (``BlockingIOError`` when nothing is pending).
        """
        conn, addr = self._sock.accept()
        conn.setblocking(False)
        return conn, InetAddress.from_sockaddr(addr)

    def shutdown_write(self) -> None:
        try:
            self._sock.shutdown(socket.SHUT_WR)
        except OSError:
            log_error("shutdownWrite error")

    def set_tcp_no_delay(self, on: bool) -> None:
        self._set_option(socket.IPPROTO_TCP, socket.TCP_NODELAY, on)

    def set_reuse_addr(self, on: bool) -> None:
        self._set_option(socket.SOL_SOCKET, socket.SO_REUSEADDR, on)

    def set_reuse_port(self, on: bool) -> None:
        option = getattr(socket, "SO_REUSEPORT", None)
        if option is not None:
            self._set_option(socket.SOL_SOCKET, option, on)

    def set_keep_alive(self, on: bool) -> None:
        self._set_option(socket.SOL_SOCKET, socket.SO_KEEPALIVE, on)

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> "Socket":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _set_option(self, level: int, option: int, on: bool) -> None:
        with contextlib.suppress(OSError):
            self._sock.setsockopt(level, option, 1 if on else 0)