# reactornet

A small TCP server library built on the reactor pattern, with one event
loop per thread. A base loop accepts connections and hands each one, in
round-robin order, to a pool of worker loops. Each connection has its own
input and output buffers and reports what happens to it through callbacks.

It needs a POSIX system (it uses `os.readv` and `os.sendfile`) and has no
dependencies outside the standard library.

## Install

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Echo server

The package ships with an echo server. By default it listens on
`127.0.0.1:8080` and runs three worker loops:

```
reactornet-echo
reactornet-echo --ip 0.0.0.0 --port 9000 --threads 4
```

Connect with any TCP client, for example `nc 127.0.0.1 8080`. Whatever you
send comes back to you. Each connection going up or down is logged. Stop the
server with Ctrl-C.

The same server can be used from code through
`reactornet.echo_server.EchoServer(loop, addr, name, num_threads=3)`. It can
also be used as a context manager that closes the underlying `TcpServer`.

## Writing a server

```python
from reactornet.event_loop import EventLoop
from reactornet.inet_address import InetAddress
from reactornet.tcp_server import TcpServer


def on_connection(conn):
    state = "UP" if conn.connected() else "DOWN"
    print(f"connection {state}: {conn.peer_address.to_ip_port()}")


def on_message(conn, buffer, receive_time):
    conn.send(buffer.retrieve_all_as_bytes())


with EventLoop() as loop, TcpServer(loop, InetAddress(8080), "EchoServer") as server:
    server.connection_callback = on_connection
    server.message_callback = on_message
    server.set_thread_num(3)
    server.start()
    loop.loop()
```

`TcpServer` also has `write_complete_callback` and `thread_init_callback`.
With `set_thread_num(0)`, the base loop serves every connection itself.
`start()` only has an effect the first time it is called. `close()`
destroys the live connections, stops the worker loops and closes the
listening socket. `listen_address` reports the address that was actually
bound, which is useful after binding port 0.

## Connections

`TcpConnection` (in `reactornet.tcp_connection`) is what the callbacks
receive:

- `send(data)` accepts bytes, or text that it encodes as UTF-8. Any thread
  may call it, and it does nothing unless the connection is connected. Data
  the socket cannot take at once is kept in `output_buffer` and written
  when the socket becomes writable.
- `send_file(fd, offset, count)` sends part of a file with `sendfile`.
- `shutdown()` closes the write half once all pending output has been sent.
- `set_high_water_mark_callback(cb, high_water_mark)` calls `cb(conn, size)`
  when the pending output first reaches the mark. The default mark is
  64 MiB.
- `name`, `loop`, `state` (a `ConnectionState`), `local_address`,
  `peer_address` and `connected()` describe the connection.

## Building blocks

- `reactornet.buffer.Buffer` is a growable byte buffer with an 8-byte
  prepend area and separate read and write positions. It has `peek`,
  `retrieve`, `retrieve_as_bytes`, `retrieve_all_as_bytes` and `append`.
  `read_fd` and `write_fd` read from and write to a file descriptor.
- `reactornet.inet_address.InetAddress(port=0, ip="127.0.0.1")` is an IPv4
  address and port. It has `to_ip`, `to_port`, `to_ip_port`, `sockaddr` and
  `from_sockaddr`.
- `reactornet.channel.Channel` is a file descriptor, the `PollEvent`s it is
  interested in, and its read, write, close and error callbacks.
- `reactornet.poller.SelectorPoller` is the multiplexer an event loop uses.
  It is built on `selectors.DefaultSelector`. Set `REACTORNET_USE_POLL` in
  the environment to use `poll(2)` instead.
- `reactornet.event_loop.EventLoop` runs the poller and dispatches events.
  It also runs tasks that other threads hand it through `run_in_loop` and
  `queue_in_loop`, and `quit()` stops it. Only one loop may exist per
  thread at a time. Creating a second one is fatal.
- `reactornet.event_loop_thread.EventLoopThread` and `EventLoopThreadPool`
  are worker threads that each own one event loop.
- `reactornet.thread.Thread` is a named daemon thread that records its
  kernel thread id. `current_tid()` returns the calling thread's id.
- `reactornet.sockets.Socket` and `create_nonblocking()` wrap a TCP socket
  and its options.
- `reactornet.acceptor.Acceptor` is the listening socket on the base loop.
- `reactornet.logger` provides `log_info`, `log_error`, `log_debug` and
  `log_fatal`. They take printf-style arguments and write lines of the form
  `[LEVEL]YYYY/MM/DD HH:MM:SS : message` to stdout.
  - Set `Logger.instance().stream` to send the lines elsewhere.
  - Debug lines appear only when `Logger.instance().debug_enabled` is true.
  - `log_fatal` raises `SystemExit(-1)` after logging.
- `reactornet.timestamp.Timestamp` is a time in whole seconds since the
  epoch.

## What it does not do

- It is server-side only. There is no TCP client or outgoing-connection
  support.
- It handles IPv4 only.
- It has no timers and no scheduled tasks.
- The poller reports only readable and writable readiness to channels.
  Hang-up and error conditions surface through reads and writes instead.