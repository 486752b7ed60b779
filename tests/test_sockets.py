import socket

import pytest

from reactornet.inet_address import InetAddress
from reactornet.sockets import Socket, create_nonblocking


@pytest.fixture
def server():
    srv = Socket(create_nonblocking())
    srv.bind_address(InetAddress(0))
    srv.listen()
    yield srv
    srv.close()


def _port(srv):
    return srv.sock.getsockname()[1]


def test_create_nonblocking_is_nonblocking_tcp():
    sock = create_nonblocking()
    try:
        assert sock.getblocking() is False
        assert sock.type == socket.SOCK_STREAM
        assert sock.family == socket.AF_INET
    finally:
        sock.close()


def test_accept_returns_peer_address(server):
    client = socket.create_connection(("127.0.0.1", _port(server)), timeout=2)
    try:
        conn, peer = server.accept()
        try:
            assert peer.to_ip() == "127.0.0.1"
            assert peer.to_port() == client.getsockname()[1]
            assert conn.getblocking() is False
        finally:
            conn.close()
    finally:
        client.close()


def test_accept_without_pending_connection_raises(server):
    with pytest.raises(BlockingIOError):
        server.accept()


def test_shutdown_write_signals_eof(server):
    client = socket.create_connection(("127.0.0.1", _port(server)), timeout=2)
    try:
        conn, _ = server.accept()
        with Socket(conn) as wrapped:
            wrapped.shutdown_write()
            assert client.recv(16) == b""
    finally:
        client.close()


@pytest.mark.parametrize(
    "setter, level, option",
    [
        (Socket.set_reuse_addr, socket.SOL_SOCKET, socket.SO_REUSEADDR),
        (Socket.set_keep_alive, socket.SOL_SOCKET, socket.SO_KEEPALIVE),
        (Socket.set_tcp_no_delay, socket.IPPROTO_TCP, socket.TCP_NODELAY),
    ],
)
def test_options_toggle(setter, level, option):
    with Socket(create_nonblocking()) as sock:
        setter(sock, True)
        assert bool(sock.sock.getsockopt(level, option)) is True
        setter(sock, False)
        assert sock.sock.getsockopt(level, option) == 0


def test_close_releases_descriptor():
    sock = Socket(create_nonblocking())
    assert sock.fd >= 0
    sock.close()
    assert sock.fd == -1


def test_bind_to_used_port_is_fatal(server):
    with Socket(create_nonblocking()) as other:
        with pytest.raises(SystemExit):
            other.bind_address(InetAddress(_port(server)))