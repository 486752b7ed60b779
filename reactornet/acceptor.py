"""Accepts new TCP connections on a listening socket inside an event loop."""

from __future__ import annotations

import errno
import socket
from typing import Any, Callable, Optional

from .channel import Channel
from .inet_address import InetAddress
from .logger import log_error
from .sockets import Socket, create_nonblocking
from .timestamp import Timestamp

NewConnectionCallback = Callable[[socket.socket, InetAddress], None]


class Acceptor:
    """Listens on an address and hands each accepted socket to a callback.

    Address and port reuse are always enabled on the listening socket;
    ``reuseport`` is accepted for interface compatibility.
    """

    def __init__(self, loop: Any, listen_addr: InetAddress, reuseport: bool = False) -> None:
        self._loop = loop
        self.reuseport = reuseport
        self.accept_socket = Socket(create_nonblocking())
        self._channel = Channel(loop, self.accept_socket.fd)
        self.new_connection_callback: Optional[NewConnectionCallback] = None
        self._listening = False
        self._closed = False
        self.accept_socket.set_reuse_addr(True)
        self.accept_socket.set_reuse_port(True)
        self.accept_socket.bind_address(listen_addr)
        self._channel.read_callback = self._handle_read

    @property
    def listening(self) -> bool:
        return self._listening

    def listen(self) -> None:
        """Start listening and register for readability with the loop."""
        self._listening = True
        self.accept_socket.listen()
        self._channel.enable_reading()

    def close(self) -> None:
        """Unregister from the loop and close the listening socket."""
        if self._closed:
            return
        self._closed = True
        self._channel.disable_all()
        self._channel.remove()
        self.accept_socket.close()

    def _handle_read(self, receive_time: Timestamp) -> None:
        try:
            conn, peer_addr = self.accept_socket.accept()
        except OSError as exc:
            log_error("accept err:%d", exc.errno or 0)
            if exc.errno == errno.EMFILE:
                log_error("sockfd reached limit")
            return
        if self.new_connection_callback is not None:
            self.new_connection_callback(conn, peer_addr)
        else:
            conn.close()