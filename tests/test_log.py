import io
import json
import logging

import pytest

from depviz.core import log
from depviz.core.log import LeveledLogger, LogConfig


def make(level=2, quiet=False, **kw):
    buf = io.StringIO()
    return LeveledLogger(LogConfig(level=level, quiet=quiet), stream=buf, **kw), buf


def test_error_tier_ignores_quiet_and_threshold():
    lg, buf = make(level=0, quiet=True)
    assert lg.log("x", 0) is True
    assert buf.getvalue() == "[!] ERROR: x\n"


def test_debug_above_threshold_is_silent():
    lg, buf = make(level=2)
    assert lg.log("x", 4) is True
    assert buf.getvalue() == ""


def test_default_level_is_plain():
    lg, buf = make(level=2)
    lg.log("x")
    assert buf.getvalue() == "[+] x\n"


def test_level_is_clamped():
    lg, buf = make(level=4)
    lg.log("a", 99)
    lg.log("a", 4)
    lg.log("b", -3)
    assert buf.getvalue().splitlines() == ["[i] DEBUG: a", "[i] DEBUG: a", "[!] ERROR: b"]

    lg, buf = make(level=2)
    lg.log("a", 99)
    assert buf.getvalue() == ""


@pytest.mark.parametrize("level, line", [
    (float("inf"), "[i] DEBUG: x"),
    (float("-inf"), "[!] ERROR: x"),
    (float("nan"), "[+] x"),
    (None, "[+] x"),
    ("warn", "[+] x"),
    (2.9, "[i] WARN: x"),
])
def test_odd_levels_never_raise(level, line):
    lg, buf = make(level=4)
    assert lg.log("x", level) is True
    assert buf.getvalue() == line + "\n"


def test_quiet_suppresses_everything_but_errors():
    lg, buf = make(level=4, quiet=True)
    lg.log("plain")
    lg.warn("w")
    lg.info("i")
    lg.debug("d")
    lg.error("boom")
    assert buf.getvalue() == "[!] ERROR: boom\n"


def test_wrappers_use_their_tier():
    lg, buf = make(level=4)
    lg.error("e")
    lg.warn("w")
    lg.info("i")
    lg.debug("d")
    assert buf.getvalue().splitlines() == [
        "[!] ERROR: e",
        "[i] WARN: w",
        "[i] INFO: i",
        "[i] DEBUG: d",
    ]


def test_wrappers_follow_threshold():
    lg, buf = make(level=2)
    lg.info("hidden")
    lg.debug("hidden")
    lg.warn("shown")
    assert buf.getvalue() == "[i] WARN: shown\n"


def test_config_changes_apply_immediately():
    cfg = LogConfig(level=1)
    buf = io.StringIO()
    lg = LeveledLogger(cfg, stream=buf)
    lg.warn("a")
    cfg.level = 2
    lg.warn("b")
    assert buf.getvalue() == "[i] WARN: b\n"


def test_message_is_not_format_expanded():
    lg, buf = make()
    lg.log("100% done %s")
    assert buf.getvalue() == "[+] 100% done %s\n"


def test_json_mode_includes_tier():
    lg, buf = make(level=3, json_mode=True)
    lg.info("hello")
    obj = json.loads(buf.getvalue())
    assert obj["msg"] == "hello"
    assert obj["tier"] == 3
    assert obj["lvl"] == "INFO"


def test_setup_reads_env(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_JSON", "1")
    try:
        log.setup(force=True)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0], log.JsonHandler)
    finally:
        log.setup("WARNING", json_mode=False, force=True)


def test_setup_unknown_level_falls_back_to_info():
    try:
        log.setup("nonsense", force=True)
        assert logging.getLogger().level == logging.INFO
    finally:
        log.setup("WARNING", json_mode=False, force=True)


def test_set_level_adjusts_root():
    try:
        log.set_level("debug")
        assert logging.getLogger().level == logging.DEBUG
        log.set_level("bogus")
        assert logging.getLogger().level == logging.INFO
    finally:
        log.set_level("WARNING")


def test_root_level_for_config():
    assert log.root_level_for(LogConfig(level=4, quiet=True)) == "ERROR"
    assert log.root_level_for(LogConfig(level=4)) == "DEBUG"
    assert log.root_level_for(LogConfig(level=2)) is None
