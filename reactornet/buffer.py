"""Growable byte buffer with a cheap prepend area, used for socket I/O."""

from __future__ import annotations

import os


class Buffer:
    """Byte buffer laid out as ``| prependable | readable | writable |``."""

    CHEAP_PREPEND = 8
    INITIAL_SIZE = 1024
    _EXTRA_READ = 65536

    def __init__(self, initial_size: int = INITIAL_SIZE) -> None:
        self._buf = bytearray(self.CHEAP_PREPEND + initial_size)
        self._reader = self.CHEAP_PREPEND
        self._writer = self.CHEAP_PREPEND

    def readable_bytes(self) -> int:
        return self._writer - self._reader

    def writable_bytes(self) -> int:
        return len(self._buf) - self._writer

    def prependable_bytes(self) -> int:
        return self._reader

    def __len__(self) -> int:
        return self.readable_bytes()

    def peek(self) -> bytes:
        """Return a copy of the readable data without consuming it."""
        return bytes(self._buf[self._reader:self._writer])

    def retrieve(self, length: int) -> None:
        """Consume ``length`` readable bytes (everything if it is not less)."""
        if length < self.readable_bytes():
            self._reader += length
        else:
            self.retrieve_all()

    def retrieve_all(self) -> None:
        self._reader = self.CHEAP_PREPEND
        self._writer = self.CHEAP_PREPEND

    def retrieve_all_as_bytes(self) -> bytes:
        return self.retrieve_as_bytes(self.readable_bytes())

    def retrieve_as_bytes(self, length: int) -> bytes:
        result = bytes(self._buf[self._reader:self._reader + length])
        self.retrieve(length)
        return result

    def ensure_writable_bytes(self, length: int) -> None:
        if self.writable_bytes() < length:
            self._make_space(length)

    def append(self, data: bytes) -> None:
        """Append ``data`` after the readable region, growing as needed."""
        n = len(data)
        self.ensure_writable_bytes(n)
        self._buf[self._writer:self._writer + n] = data
        self._writer += n

    def read_fd(self, fd: int) -> int:
        """Read from ``fd`` into the buffer; return the byte count (0 on EOF).

        Reads up to the free space plus a 64 KiB overflow area in one call.
        Raises ``OSError`` on failure.
        """
        writable = self.writable_bytes()
        extra = bytearray(self._EXTRA_READ)
        with memoryview(self._buf) as view, view[self._writer:] as tail:
            targets = [tail, extra] if writable < len(extra) else [tail]
            n = os.readv(fd, targets)
        if n <= writable:
            self._writer += n
        else:
            self._writer = len(self._buf)
            self.append(extra[:n - writable])
        return n

    def write_fd(self, fd: int) -> int:
        """Write readable data to ``fd`` without consuming it; return bytes written."""
        return os.write(fd, self.peek())

    def _make_space(self, length: int) -> None:
        if self.writable_bytes() + self.prependable_bytes() < length + self.CHEAP_PREPEND:
            self._buf.extend(bytes(self._writer + length - len(self._buf)))
        else:
            readable = self.readable_bytes()
            start = self.CHEAP_PREPEND
            self._buf[start:start + readable] = self._buf[self._reader:self._writer]
            self._reader = start
            self._writer = start + readable