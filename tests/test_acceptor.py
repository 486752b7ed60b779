import socket
import threading

import pytest

from reactornet.acceptor import Acceptor
from reactornet.event_loop import EventLoop
from reactornet.inet_address import InetAddress


@pytest.fixture
def loop():
    ev = EventLoop()
    yield ev
    ev.close()


@pytest.fixture
def acceptor(loop):
    acc = Acceptor(loop, InetAddress(0), False)
    yield acc
    acc.close()


def _port(acc):
    return acc.accept_socket.sock.getsockname()[1]


def _run_with_guard(loop, seconds):
    guard = threading.Timer(seconds, lambda: loop.run_in_loop(loop.quit))
    guard.start()
    try:
        loop.loop()
    finally:
        guard.cancel()


def test_listen_sets_listening(acceptor):
    assert acceptor.listening is False
    acceptor.listen()
    assert acceptor.listening is True


@pytest.mark.timeout(10)
def test_new_connection_callback_receives_peer(loop, acceptor):
    received = []

    def on_connection(conn, peer):
        received.append((conn, peer))
        loop.quit()

    acceptor.new_connection_callback = on_connection
    acceptor.listen()
    client = socket.create_connection(("127.0.0.1", _port(acceptor)), timeout=2)
    try:
        _run_with_guard(loop, 5)
        assert len(received) == 1
        conn, peer = received[0]
        assert peer.to_ip() == "127.0.0.1"
        assert peer.to_port() == client.getsockname()[1]
        conn.sendall(b"hi")
        assert client.recv(2) == b"hi"
        conn.close()
    finally:
        client.close()


@pytest.mark.timeout(10)
def test_connection_closed_without_callback(loop, acceptor):
    acceptor.listen()
    client = socket.create_connection(("127.0.0.1", _port(acceptor)), timeout=2)
    try:
        _run_with_guard(loop, 0.5)
        assert client.recv(16) == b""
    finally:
        client.close()


def test_close_releases_socket_and_channel(loop):
    acc = Acceptor(loop, InetAddress(0), True)
    acc.listen()
    assert len(loop._poller.channels) == 2
    acc.close()
    assert acc.accept_socket.fd == -1
    assert len(loop._poller.channels) == 1