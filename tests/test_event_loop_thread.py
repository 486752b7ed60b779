import threading

import pytest

from reactornet.event_loop_thread import EventLoopThread, EventLoopThreadPool


@pytest.mark.timeout(10)
def test_loop_runs_in_its_own_thread():
    seen = []
    elt = EventLoopThread(seen.append, name="io")
    loop = elt.start_loop()
    try:
        assert seen == [loop]
        assert loop.is_in_loop_thread() is False
        done = threading.Event()
        names = []

        def task():
            names.append(threading.current_thread().name)
            done.set()

        loop.run_in_loop(task)
        assert done.wait(5)
        assert names == ["io"]
    finally:
        elt.close()
    assert loop.looping is False


@pytest.mark.timeout(10)
def test_close_right_after_start_stops_thread():
    elt = EventLoopThread()
    loop = elt.start_loop()
    elt.close()
    assert loop.looping is False
    assert elt._thread._thread.is_alive() is False


def test_pool_without_threads_uses_base_loop():
    base = object()
    pool = EventLoopThreadPool(base, "pool")
    called = []
    assert pool.started is False
    pool.start(called.append)
    assert pool.started is True
    assert called == [base]
    assert pool.get_next_loop() is base
    assert pool.get_next_loop() is base
    assert pool.get_all_loops() == [base]


@pytest.mark.timeout(20)
def test_pool_round_robin_over_threads():
    base = object()
    pool = EventLoopThreadPool(base, "pool")
    pool.num_threads = 3
    names = []
    lock = threading.Lock()

    def init(loop):
        with lock:
            names.append(threading.current_thread().name)

    pool.start(init)
    try:
        loops = pool.get_all_loops()
        assert len(loops) == pool.num_threads
        assert len({id(lp) for lp in loops}) == len(loops)
        assert base not in loops
        assert sorted(names) == ["pool0", "pool1", "pool2"]
        handed_out = [pool.get_next_loop() for _ in range(2 * len(loops))]
        assert handed_out == loops + loops
    finally:
        pool.close()
    assert all(not lp.looping for lp in loops)
    assert pool.get_next_loop() is base