"""One established TCP connection, serviced by the event loop it was assigned to."""

from __future__ import annotations

import enum
import errno
import functools
import os
import socket
from typing import Any, Callable, Optional, Union

from .buffer import Buffer
from .channel import Channel
from .inet_address import InetAddress
from .logger import log_error, log_fatal, log_info
from .sockets import Socket
from .timestamp import Timestamp

DEFAULT_HIGH_WATER_MARK = 64 * 1024 * 1024

ConnectionCallback = Callable[["TcpConnection"], None]
CloseCallback = Callable[["TcpConnection"], None]
WriteCompleteCallback = Callable[["TcpConnection"], None]
HighWaterMarkCallback = Callable[["TcpConnection", int], None]
MessageCallback = Callable[["TcpConnection", Buffer, Timestamp], None]

_FAULT_ERRNOS = (errno.EPIPE, errno.ECONNRESET)


class ConnectionState(enum.Enum):
    DISCONNECTED = 0
    CONNECTING = 1
    CONNECTED = 2
    DISCONNECTING = 3


class TcpConnection:
    """Owns a connected socket, its channel and its input and output buffers.

    All I/O happens in the thread of ``loop``; :meth:`send`, :meth:`send_file`
    and :meth:`shutdown` may be called from any thread.
    """

    def __init__(
        self,
        loop: Any,
        name: str,
        sock: socket.socket,
        local_addr: InetAddress,
        peer_addr: InetAddress,
    ) -> None:
        if loop is None:
            log_fatal("TcpConnection: loop is null!")
        self._loop = loop
        self._name = name
        self._state = ConnectionState.CONNECTING
        self._reading = True
        self._socket = Socket(sock)
        self._channel = Channel(loop, sock.fileno())
        self._local_addr = local_addr
        self._peer_addr = peer_addr

        self.connection_callback: Optional[ConnectionCallback] = None
        self.message_callback: Optional[MessageCallback] = None
        self.write_complete_callback: Optional[WriteCompleteCallback] = None
        self.close_callback: Optional[CloseCallback] = None
        self._high_water_mark_callback: Optional[HighWaterMarkCallback] = None
        self._high_water_mark = DEFAULT_HIGH_WATER_MARK

        self.input_buffer = Buffer()
        self.output_buffer = Buffer()

        self._channel.read_callback = self._handle_read
        self._channel.write_callback = self._handle_write
        self._channel.close_callback = self._handle_close
        self._channel.error_callback = self._handle_error

        log_info("TcpConnection::ctor[%s] at fd=%d", name, self._channel.fd)
        self._socket.set_keep_alive(True)

    @property
    def loop(self) -> Any:
        return self._loop

    @property
    def name(self) -> str:
        return self._name

    @property
    def local_address(self) -> InetAddress:
        return self._local_addr

    @property
    def peer_address(self) -> InetAddress:
        return self._peer_addr

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def high_water_mark(self) -> int:
        return self._high_water_mark

    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def set_high_water_mark_callback(
        self, cb: Optional[HighWaterMarkCallback], high_water_mark: int
    ) -> None:
        """Call ``cb`` when pending output first crosses ``high_water_mark`` bytes."""
        self._high_water_mark_callback = cb
        self._high_water_mark = high_water_mark

    def send(self, data: Union[bytes, bytearray, memoryview, str]) -> None:
        """Send ``data`` (text is encoded as UTF-8); ignored unless connected."""
        if self._state is not ConnectionState.CONNECTED:
            return
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        if self._loop.is_in_loop_thread():
            self._send_in_loop(payload)
        else:
            self._loop.run_in_loop(functools.partial(self._send_in_loop, payload))

    def send_file(self, fd: int, offset: int, count: int) -> None:
        """Send ``count`` bytes of file ``fd`` starting at ``offset`` with sendfile."""
        if not self.connected():
            log_error("TcpConnection::sendFile - not connected")
            return
        if self._loop.is_in_loop_thread():
            self._send_file_in_loop(fd, offset, count)
        else:
            self._loop.run_in_loop(
                functools.partial(self._send_file_in_loop, fd, offset, count)
            )

    def shutdown(self) -> None:
        """Close the write half once all pending output has been sent."""
        if self._state is ConnectionState.CONNECTED:
            self._state = ConnectionState.DISCONNECTING
            self._loop.run_in_loop(self._shutdown_in_loop)

    def connect_established(self) -> None:
        """Start reading and report the connection as up."""
        self._state = ConnectionState.CONNECTED
        self._channel.tie(self)
        self._channel.enable_reading()
        if self.connection_callback is not None:
            self.connection_callback(self)

    def connect_destroyed(self) -> None:
        """Report the connection as down if needed, unregister it and close the socket."""
        if self._state is ConnectionState.CONNECTED:
            self._state = ConnectionState.DISCONNECTED
            self._channel.disable_all()
            if self.connection_callback is not None:
                self.connection_callback(self)
        self._channel.remove()
        log_info("TcpConnection::destroyed[%s] at fd=%d", self._name, self._channel.fd)
        self._socket.close()

    def _send_in_loop(self, data: bytes) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            log_error("disconnected, give up writing")
            return
        nwrote = 0
        remaining = len(data)
        fault_error = False

        if not self._channel.is_writing() and self.output_buffer.readable_bytes() == 0:
            try:
                nwrote = self._socket.sock.send(data)
            except BlockingIOError:
                nwrote = 0
            except OSError as exc:
                nwrote = 0
                log_error("TcpConnection::sendInLoop %s", exc)
                if exc.errno in _FAULT_ERRNOS:
                    fault_error = True
            else:
                remaining = len(data) - nwrote
                if remaining == 0 and self.write_complete_callback is not None:
                    self._loop.queue_in_loop(
                        functools.partial(self.write_complete_callback, self)
                    )

        if not fault_error and remaining > 0:
            old_len = self.output_buffer.readable_bytes()
            total = old_len + remaining
            if (
                total >= self._high_water_mark
                and old_len < self._high_water_mark
                and self._high_water_mark_callback is not None
            ):
                self._loop.queue_in_loop(
                    functools.partial(self._high_water_mark_callback, self, total)
                )
            self.output_buffer.append(data[nwrote:])
            if not self._channel.is_writing():
                self._channel.enable_writing()

    def _shutdown_in_loop(self) -> None:
        if not self._channel.is_writing():
            self._socket.shutdown_write()

    def _send_file_in_loop(self, fd: int, offset: int, count: int) -> None:
        if self._state is ConnectionState.DISCONNECTING:
            log_error("disconnected, give up writing")
            return
        remaining = count
        fault_error = False

        if not self._channel.is_writing() and self.output_buffer.readable_bytes() == 0:
            try:
                sent = os.sendfile(self._socket.fd, fd, offset, remaining)
            except BlockingIOError:
                sent = None
            except OSError as exc:
                sent = None
                log_error("TcpConnection::sendFileInLoop %s", exc)
                if exc.errno in _FAULT_ERRNOS:
                    fault_error = True
            if sent is not None:
                if sent == 0 and remaining > 0:
                    log_error("TcpConnection::sendFileInLoop - end of file reached")
                    return
                offset += sent
                remaining -= sent
                if remaining == 0 and self.write_complete_callback is not None:
                    self._loop.queue_in_loop(
                        functools.partial(self.write_complete_callback, self)
                    )

        if not fault_error and remaining > 0:
            self._loop.queue_in_loop(
                functools.partial(self._send_file_in_loop, fd, offset, remaining)
            )

    def _handle_read(self, receive_time: Timestamp) -> None:
        try:
            n = self.input_buffer.read_fd(self._channel.fd)
        except BlockingIOError:
            return
        except OSError as exc:
            log_error("TcpConnection::handleRead %s", exc)
            self._handle_error()
            return
        if n > 0:
            if self.message_callback is not None:
                self.message_callback(self, self.input_buffer, receive_time)
        else:
            self._handle_close()

    def _handle_write(self) -> None:
        if not self._channel.is_writing():
            log_error("TcpConnection fd=%d is down, no more writing", self._channel.fd)
            return
        try:
            n = self.output_buffer.write_fd(self._channel.fd)
        except OSError as exc:
            log_error("TcpConnection::handleWrite %s", exc)
            return
        if n <= 0:
            log_error("TcpConnection::handleWrite")
            return
        self.output_buffer.retrieve(n)
        if self.output_buffer.readable_bytes() == 0:
            self._channel.disable_writing()
            if self.write_complete_callback is not None:
                self._loop.queue_in_loop(
                    functools.partial(self.write_complete_callback, self)
                )
            if self._state is ConnectionState.DISCONNECTING:
                self._shutdown_in_loop()

    def _handle_close(self) -> None:
        log_info(
            "TcpConnection::handleClose fd=%d state=%s", self._channel.fd, self._state.name
        )
        self._state = ConnectionState.DISCONNECTED
        self._channel.disable_all()
        if self.connection_callback is not None:
            self.connection_callback(self)
        if self.close_callback is not None:
            self.close_callback(self)

    def _handle_error(self) -> None:
        try:
            err = self._socket.sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        except OSError as exc:
            err = exc.errno or 0
        log_error("TcpConnection::handleError name:%s - SO_ERROR:%d", self._name, err)