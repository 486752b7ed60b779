import re
import time

from reactornet.timestamp import Timestamp

FORMAT = re.compile(r"^\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}$")


def test_default_is_epoch():
    assert Timestamp().seconds_since_epoch == 0


def test_now_is_current_time():
    before = int(time.time())
    stamp = Timestamp.now()
    after = int(time.time())
    assert before <= stamp.seconds_since_epoch <= after


def test_to_string_format():
    text = Timestamp.now().to_string()
    assert len(text) == 19
    assert bool(FORMAT.fullmatch(text)) is True


def test_to_string_round_trips_through_local_time():
    seconds = 1_000_000_000
    text = Timestamp(seconds).to_string()
    parsed = time.mktime(time.strptime(text, "%Y/%m/%d %H:%M:%S"))
    assert int(parsed) == seconds


def test_str_matches_to_string():
    stamp = Timestamp(1_000_000_000)
    assert str(stamp) == stamp.to_string()


def test_ordering_and_equality():
    assert Timestamp(5) < Timestamp(6)
    assert Timestamp(7) == Timestamp(7)