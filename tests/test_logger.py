import re

import pytest

from reactornet.logger import (
    MAX_MESSAGE,
    Logger,
    LogLevel,
    log_debug,
    log_error,
    log_fatal,
    log_info,
)

STAMP = r"\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}"


def test_instance_is_shared():
    first = Logger.instance()
    second = Logger.instance()
    assert id(first) == id(second)
    first.debug_enabled = True
    try:
        assert second.debug_enabled is True
    finally:
        first.debug_enabled = False


def test_info_line_format(capsys):
    log_info("hello %d", 42)
    out = capsys.readouterr().out
    assert out.startswith("[INFO]")
    assert out.endswith(" : hello 42\n")
    assert bool(re.fullmatch(rf"\[INFO\]{STAMP} : hello 42\n", out)) is True


def test_error_prefix(capsys):
    log_error("bad %s", "thing")
    out = capsys.readouterr().out
    assert out.startswith("[ERROR]")
    assert out.endswith(" : bad thing\n")


def test_log_with_explicit_level(capsys):
    Logger.instance().log(LogLevel.INFO, "plain")
    assert capsys.readouterr().out.endswith(" : plain\n")


def test_message_without_args_is_not_formatted(capsys):
    log_info("100%")
    assert capsys.readouterr().out.endswith(" : 100%\n")


def test_message_is_truncated(capsys):
    log_info("%s", "x" * 5000)
    out = capsys.readouterr().out
    message = out.split(" : ", 1)[1].rstrip("\n")
    assert len(message) == MAX_MESSAGE


def test_fatal_logs_and_exits(capsys):
    with pytest.raises(SystemExit) as info:
        log_fatal("dying %d", 1)
    assert info.value.code == -1
    assert capsys.readouterr().out.startswith("[FATAL]")


def test_debug_silent_by_default(capsys):
    log_debug("hidden")
    assert capsys.readouterr().out == ""


def test_debug_when_enabled(capsys):
    logger = Logger.instance()
    logger.debug_enabled = True
    try:
        log_debug("shown %s", "now")
    finally:
        logger.debug_enabled = False
    out = capsys.readouterr().out
    assert out.startswith("[DEBUG]")
    assert out.endswith(" : shown now\n")