"""The reactor: one event loop per thread, driving a poller and queued tasks."""

from __future__ import annotations

import socket
import struct
import threading
from typing import Callable, Dict, List

from .channel import Channel
from .logger import log_debug, log_error, log_fatal, log_info
from .poller import new_default_poller
from .thread import current_tid
from .timestamp import Timestamp

POLL_TIME_MS = 10000

Functor = Callable[[], None]

_WAKEUP_MESSAGE = struct.pack("=Q", 1)

_loops_by_thread: Dict[int, "EventLoop"] = {}
_registry_lock = threading.Lock()


class EventLoop:
    """Runs in the thread that created it; other threads hand it work via queues."""

    def __init__(self) -> None:
        self._thread_id = current_tid()
        log_debug("EventLoop created %x in thread %d", id(self), self._thread_id)
        with _registry_lock:
            existing = _loops_by_thread.get(self._thread_id)
            if existing is None:
                _loops_by_thread[self._thread_id] = self
        if existing is not None:
            log_fatal(
                "Another EventLoop %x exists in this thread %d", id(existing), self._thread_id
            )

        self._looping = False
        self._quit = False
        self._calling_pending_functors = False
        self._closed = False
        self._poll_return_time = Timestamp()
        self._pending_functors: List[Functor] = []
        self._lock = threading.Lock()
        self._poller = new_default_poller(self)

        self._wakeup_reader, self._wakeup_writer = socket.socketpair()
        self._wakeup_reader.setblocking(False)
        self._wakeup_writer.setblocking(False)
        self._wakeup_channel = Channel(self, self._wakeup_reader.fileno())
        self._wakeup_channel.read_callback = self._handle_read
        self._wakeup_channel.enable_reading()

    @property
    def poll_return_time(self) -> Timestamp:
        return self._poll_return_time

    @property
    def looping(self) -> bool:
        return self._looping

    def loop(self) -> None:
        """Poll and dispatch until :meth:`quit` is called."""
        self._looping = True
        self._quit = False
        log_info("EventLoop %x start looping", id(self))
        try:
            while not self._quit:
                self._poll_return_time, active = self._poller.poll(POLL_TIME_MS)
                for channel in active:
                    channel.handle_event(self._poll_return_time)
                self._do_pending_functors()
        finally:
            self._looping = False
        log_info("EventLoop %x stop looping.", id(self))

    def quit(self) -> None:
        self._quit = True
        if not self.is_in_loop_thread():
            self.wakeup()

    def run_in_loop(self, cb: Functor) -> None:
        """Run ``cb`` now if called from the loop's thread, otherwise queue it."""
        if self.is_in_loop_thread():
            cb()
        else:
            self.queue_in_loop(cb)

    def queue_in_loop(self, cb: Functor) -> None:
        """Queue ``cb`` to run after the next poll, waking the loop if needed."""
        with self._lock:
            self._pending_functors.append(cb)
        if not self.is_in_loop_thread() or self._calling_pending_functors:
            self.wakeup()

    def wakeup(self) -> None:
        """Make a blocked poll in the loop's thread return."""
        try:
            n = self._wakeup_writer.send(_WAKEUP_MESSAGE)
        except BlockingIOError:
            return  # the channel is full, so a wakeup is already pending
        except OSError as exc:
            log_error("EventLoop.wakeup() failed: %s", exc)
            return
        if n != len(_WAKEUP_MESSAGE):
            log_error("EventLoop.wakeup() writes %d bytes instead of 8", n)

    def update_channel(self, channel: Channel) -> None:
        self._poller.update_channel(channel)

    def remove_channel(self, channel: Channel) -> None:
        self._poller.remove_channel(channel)

    def has_channel(self, channel: Channel) -> bool:
        return self._poller.has_channel(channel)

    def is_in_loop_thread(self) -> bool:
        return self._thread_id == current_tid()

    def close(self) -> None:
        """Release the loop's resources and free its thread for a new loop."""
        if self._closed:
            return
        self._closed = True
        self._wakeup_channel.disable_all()
        self._wakeup_channel.remove()
        self._wakeup_reader.close()
        self._wakeup_writer.close()
        self._poller.close()
        with _registry_lock:
            if _loops_by_thread.get(self._thread_id) is self:
                del _loops_by_thread[self._thread_id]

    def __enter__(self) -> "EventLoop":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _handle_read(self, receive_time: Timestamp) -> None:
        total = 0
        while True:
            try:
                chunk = self._wakeup_reader.recv(4096)
            except BlockingIOError:
                break
            if not chunk:
                break
            total += len(chunk)
        if total == 0 or total % len(_WAKEUP_MESSAGE):
            log_error("EventLoop.handle_read() reads %d bytes instead of 8", total)

    def _do_pending_functors(self) -> None:
        self._calling_pending_functors = True
        try:
            with self._lock:
                functors, self._pending_functors = self._pending_functors, []
            for functor in functors:
                functor()
        finally:
            self._calling_pending_functors = False