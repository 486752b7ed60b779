"""I/O multiplexing: the poller interface and its selector-based implementation."""

from __future__ import annotations

import abc
import enum
import os
import selectors
from typing import Any, Dict, List, Optional, Tuple

from .channel import (
    INDEX_ADDED,
    INDEX_DELETED,
    INDEX_NEW,
    READ_EVENT,
    WRITE_EVENT,
    Channel,
    PollEvent,
)
from .logger import log_debug, log_error, log_fatal, log_info
from .timestamp import Timestamp

PollResult = Tuple[Timestamp, List[Channel]]


class Poller(abc.ABC):
    """Watches the channels of one event loop, keyed by descriptor."""

    def __init__(self, loop: Any) -> None:
        self.owner_loop = loop
        self.channels: Dict[int, Channel] = {}

    @abc.abstractmethod
    def poll(self, timeout_ms: int) -> PollResult:
        """Wait for events; return the wake-up time and the ready channels."""

    @abc.abstractmethod
    def update_channel(self, channel: Channel) -> None:
        """Register or re-register ``channel`` with its current interest set."""

    @abc.abstractmethod
    def remove_channel(self, channel: Channel) -> None:
        """Forget ``channel`` entirely."""

    def has_channel(self, channel: Channel) -> bool:
        return self.channels.get(channel.fd) is channel

    def close(self) -> None:
        """Release any operating-system resources held by the poller."""


class _Op(enum.Enum):
    ADD = "add"
    MOD = "mod"
    DEL = "del"


def _selector_mask(events: PollEvent) -> int:
    mask = 0
    if events & READ_EVENT:
        mask |= selectors.EVENT_READ
    if events & WRITE_EVENT:
        mask |= selectors.EVENT_WRITE
    return mask


def _poll_events(mask: int) -> PollEvent:
    revents = PollEvent.NONE
    if mask & selectors.EVENT_READ:
        revents |= PollEvent.IN
    if mask & selectors.EVENT_WRITE:
        revents |= PollEvent.OUT
    return revents


class SelectorPoller(Poller):
    """Poller built on the :mod:`selectors` module (epoll where available)."""

    def __init__(self, loop: Any, selector: Optional[selectors.BaseSelector] = None) -> None:
        super().__init__(loop)
        try:
            self._selector = selector if selector is not None else selectors.DefaultSelector()
        except OSError as exc:
            log_fatal("selector create error:%d", exc.errno or 0)

    def poll(self, timeout_ms: int) -> PollResult:
        log_info("func=poll => fd total count:%d", len(self.channels))
        timeout = None if timeout_ms < 0 else timeout_ms / 1000
        try:
            ready = self._selector.select(timeout)
        except OSError as exc:
            log_error("SelectorPoller.poll() error: %s", exc)
            ready = []
        now = Timestamp.now()
        active: List[Channel] = []
        if ready:
            log_info("%d events happened", len(ready))
            for key, mask in ready:
                channel = key.data
                channel.revents = _poll_events(mask)
                active.append(channel)
        else:
            log_debug("poll timeout!")
        return now, active

    def update_channel(self, channel: Channel) -> None:
        index = channel.index
        log_info(
            "func=update_channel => fd=%d events=%d index=%d",
            channel.fd, int(channel.events), index,
        )
        if index in (INDEX_NEW, INDEX_DELETED):
            if index == INDEX_NEW:
                self.channels[channel.fd] = channel
            channel.index = INDEX_ADDED
            self._update(_Op.ADD, channel)
        elif channel.is_none_event():
            self._update(_Op.DEL, channel)
            channel.index = INDEX_DELETED
        else:
            self._update(_Op.MOD, channel)

    def remove_channel(self, channel: Channel) -> None:
        fd = channel.fd
        self.channels.pop(fd, None)
        log_info("func=remove_channel => fd=%d", fd)
        if channel.index == INDEX_ADDED:
            self._update(_Op.DEL, channel)
        channel.index = INDEX_NEW

    def close(self) -> None:
        self._selector.close()

    def _update(self, op: _Op, channel: Channel) -> None:
        fd = channel.fd
        mask = _selector_mask(channel.events)
        try:
            registered = fd in self._selector.get_map()
            if op is _Op.DEL or mask == 0:
                if registered:
                    self._selector.unregister(fd)
            elif registered:
                self._selector.modify(fd, mask, channel)
            else:
                self._selector.register(fd, mask, channel)
        except (OSError, ValueError, KeyError) as exc:
            if op is _Op.DEL:
                log_error("selector del error:%s", exc)
            else:
                log_fatal("selector add/mod error:%s", exc)


def new_default_poller(loop: Any) -> Poller:
    """Return the poller an event loop uses by default.

    Setting ``REACTORNET_USE_POLL`` selects the ``poll(2)`` backend where it exists.
    """
    if os.environ.get("REACTORNET_USE_POLL") and hasattr(selectors, "PollSelector"):
        return SelectorPoller(loop, selectors.PollSelector())
    return SelectorPoller(loop)