"""A file descriptor together with the events it is interested in and their handlers."""

from __future__ import annotations

import enum
import weakref
from typing import Any, Callable, Optional

from .logger import log_info
from .timestamp import Timestamp

INDEX_NEW = -1
INDEX_ADDED = 1
INDEX_DELETED = 2


class PollEvent(enum.IntFlag):
    """Readiness bits, numbered as the kernel's epoll interface numbers them."""

    NONE = 0
    IN = 0x001
    PRI = 0x002
    OUT = 0x004
    ERR = 0x008
    HUP = 0x010


NONE_EVENT = PollEvent.NONE
READ_EVENT = PollEvent.IN | PollEvent.PRI
WRITE_EVENT = PollEvent.OUT

ReadEventCallback = Callable[[Timestamp], None]
EventCallback = Callable[[], None]


class Channel:
    """Binds one descriptor to an event loop and dispatches its ready events.

    ``loop`` must provide ``update_channel(channel)`` and ``remove_channel(channel)``.
    """

    def __init__(self, loop: Any, fd: int) -> None:
        self.loop = loop
        self._fd = fd
        self._events = NONE_EVENT
        self.revents = NONE_EVENT
        self.index = INDEX_NEW
        self._tie: Optional[weakref.ref] = None
        self.read_callback: Optional[ReadEventCallback] = None
        self.write_callback: Optional[EventCallback] = None
        self.close_callback: Optional[EventCallback] = None
        self.error_callback: Optional[EventCallback] = None

    @property
    def fd(self) -> int:
        return self._fd

    @property
    def events(self) -> PollEvent:
        return self._events

    def tie(self, obj: Any) -> None:
        """Only dispatch events while ``obj`` is still alive."""
        self._tie = weakref.ref(obj)

    def handle_event(self, receive_time: Timestamp) -> None:
        """Run the callbacks matching :attr:`revents`."""
        if self._tie is not None:
            guard = self._tie()
            if guard is None:
                return
            self._handle_event_with_guard(receive_time)
            del guard
        else:
            self._handle_event_with_guard(receive_time)

    def _handle_event_with_guard(self, receive_time: Timestamp) -> None:
        revents = PollEvent(self.revents)
        log_info("channel handle_event revents:%d", int(revents))
        if revents & PollEvent.HUP and not revents & PollEvent.IN:
            if self.close_callback:
                self.close_callback()
        if revents & PollEvent.ERR:
            if self.error_callback:
                self.error_callback()
        if revents & (PollEvent.IN | PollEvent.PRI):
            if self.read_callback:
                self.read_callback(receive_time)
        if revents & PollEvent.OUT:
            if self.write_callback:
                self.write_callback()

    def enable_reading(self) -> None:
        self._events |= READ_EVENT
        self._update()

    def disable_reading(self) -> None:
        self._events &= ~READ_EVENT
        self._update()

    def enable_writing(self) -> None:
        self._events |= WRITE_EVENT
        self._update()

    def disable_writing(self) -> None:
        self._events &= ~WRITE_EVENT
        self._update()

    def disable_all(self) -> None:
        self._events = NONE_EVENT
        self._update()

    def is_none_event(self) -> bool:
        return self._events == NONE_EVENT

    def is_writing(self) -> bool:
        return bool(self._events & WRITE_EVENT)

    def is_reading(self) -> bool:
        return bool(self._events & READ_EVENT)

    def remove(self) -> None:
        """Detach this channel from its loop's poller."""
        self.loop.remove_channel(self)

    def _update(self) -> None:
        self.loop.update_channel(self)