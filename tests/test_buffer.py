import os

import pytest

from reactornet.buffer import Buffer


@pytest.fixture
def pipe():
    r, w = os.pipe()
    yield r, w
    for fd in (r, w):
        try:
            os.close(fd)
        except OSError:
            pass


def capacity(buf):
    return buf.prependable_bytes() + buf.readable_bytes() + buf.writable_bytes()


def test_initial_layout():
    buf = Buffer()
    assert buf.readable_bytes() == 0
    assert buf.writable_bytes() == Buffer.INITIAL_SIZE
    assert buf.prependable_bytes() == Buffer.CHEAP_PREPEND


def test_append_and_retrieve_all_as_bytes():
    buf = Buffer()
    buf.append(b"hello world")
    assert buf.readable_bytes() == 11
    assert buf.peek() == b"hello world"
    assert buf.retrieve_all_as_bytes() == b"hello world"
    assert buf.readable_bytes() == 0
    assert buf.prependable_bytes() == Buffer.CHEAP_PREPEND


def test_partial_retrieve():
    buf = Buffer()
    buf.append(b"abcdef")
    assert buf.retrieve_as_bytes(2) == b"ab"
    assert buf.peek() == b"cdef"
    assert buf.prependable_bytes() == Buffer.CHEAP_PREPEND + 2


def test_retrieve_more_than_readable_resets():
    buf = Buffer()
    buf.append(b"abc")
    buf.retrieve(100)
    assert buf.readable_bytes() == 0
    assert buf.prependable_bytes() == Buffer.CHEAP_PREPEND


def test_growth_when_space_is_short():
    buf = Buffer()
    data = bytes(range(256)) * 10
    buf.append(data)
    assert buf.readable_bytes() == len(data)
    assert buf.writable_bytes() == 0
    assert buf.peek() == data


def test_compaction_reuses_consumed_space():
    buf = Buffer()
    before = capacity(buf)
    buf.append(b"a" * 1000)
    buf.retrieve(500)
    buf.append(b"b" * 100)
    assert capacity(buf) == before
    assert buf.prependable_bytes() == Buffer.CHEAP_PREPEND
    assert buf.peek() == b"a" * 500 + b"b" * 100


def test_ensure_writable_bytes():
    buf = Buffer()
    buf.ensure_writable_bytes(5000)
    assert buf.writable_bytes() >= 5000


def test_len_is_readable_bytes():
    buf = Buffer()
    buf.append(b"xyz")
    assert len(buf) == buf.readable_bytes()


def test_read_fd_small(pipe):
    r, w = pipe
    os.write(w, b"ping")
    buf = Buffer()
    assert buf.read_fd(r) == 4
    assert buf.retrieve_all_as_bytes() == b"ping"


def test_read_fd_overflows_into_extra_space(pipe):
    r, w = pipe
    data = os.urandom(3000)
    os.write(w, data)
    buf = Buffer()
    n = buf.read_fd(r)
    assert n == len(data)
    assert buf.peek() == data


def test_read_fd_eof(pipe):
    r, w = pipe
    os.close(w)
    buf = Buffer()
    assert buf.read_fd(r) == 0
    assert buf.readable_bytes() == 0


def test_read_fd_bad_descriptor_raises(pipe):
    r, w = pipe
    os.close(r)
    with pytest.raises(OSError):
        Buffer().read_fd(r)


def test_write_fd_does_not_consume(pipe):
    r, w = pipe
    buf = Buffer()
    buf.append(b"abc")
    assert buf.write_fd(w) == 3
    assert os.read(r, 10) == b"abc"
    assert buf.readable_bytes() == 3