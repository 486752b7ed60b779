"""Threads that each own an event loop, and a round-robin pool of them."""

from __future__ import annotations

import threading
from typing import Any, Callable, List, Optional

from .event_loop import EventLoop
from .thread import Thread

ThreadInitCallback = Callable[[Any], None]


class EventLoopThread:
    """Runs an :class:`EventLoop` in a dedicated thread."""

    def __init__(self, callback: Optional[ThreadInitCallback] = None, name: str = "") -> None:
        self._loop: Optional[EventLoop] = None
        self._exiting = False
        self._cond = threading.Condition()
        self._callback = callback
        self._thread = Thread(self._thread_func, name)

    @property
    def name(self) -> str:
        return self._thread.name

    def start_loop(self) -> EventLoop:
        """Start the thread and return its loop once the loop exists."""
        self._thread.start()
        with self._cond:
            self._cond.wait_for(lambda: self._loop is not None)
            return self._loop

    def close(self) -> None:
        """Stop the loop and wait for the thread to finish."""
        self._exiting = True
        with self._cond:
            loop = self._loop
        if loop is not None:
            # Queued rather than set directly so a loop that has not yet
            # entered loop() cannot reset the request.
            loop.run_in_loop(loop.quit)
            self._thread.join()

    def _thread_func(self) -> None:
        loop = EventLoop()
        try:
            if self._callback is not None:
                self._callback(loop)
            with self._cond:
                self._loop = loop
                self._cond.notify_all()
            loop.loop()
        finally:
            with self._cond:
                self._loop = None
            loop.close()


class EventLoopThreadPool:
    """A fixed set of loop threads handed out in round-robin order.

    With no threads every request gets the base loop.
    """

    def __init__(self, base_loop: Any, name: str) -> None:
        self._base_loop = base_loop
        self._name = name
        self._started = False
        self.num_threads = 0
        self._next = 0
        self._threads: List[EventLoopThread] = []
        self._loops: List[EventLoop] = []

    @property
    def started(self) -> bool:
        return self._started

    @property
    def name(self) -> str:
        return self._name

    def start(self, cb: Optional[ThreadInitCallback] = None) -> None:
        """Start ``num_threads`` loop threads, named ``<name><i>``."""
        self._started = True
        for i in range(self.num_threads):
            thread = EventLoopThread(cb, f"{self._name}{i}")
            self._threads.append(thread)
            self._loops.append(thread.start_loop())
        if self.num_threads == 0 and cb is not None:
            cb(self._base_loop)

    def get_next_loop(self) -> Any:
        if not self._loops:
            return self._base_loop
        loop = self._loops[self._next]
        self._next = (self._next + 1) % len(self._loops)
        return loop

    def get_all_loops(self) -> List[Any]:
        return list(self._loops) if self._loops else [self._base_loop]

    def close(self) -> None:
        """Stop every loop thread."""
        for thread in self._threads:
            thread.close()
        self._threads.clear()
        self._loops.clear()
        self._next = 0