# src/depviz/core/log.py
from __future__ import annotations

import json
import logging
import math
import os
import sys
from dataclasses import dataclass
from typing import IO, Optional

from dotenv import load_dotenv

_configured = False

# Tier 1 ("plain") ranks between WARN and ERROR when gating, so it gets
# its own stdlib level between WARNING and ERROR.
PLAIN = 35
logging.addLevelName(PLAIN, "LOG")

ERROR, LOG, WARN, INFO, DEBUG = 0, 1, 2, 3, 4

PREFIXES = ("[!] ERROR: ", "[+] ", "[i] WARN: ", "[i] INFO: ", "[i] DEBUG: ")
_PY_LEVELS = (logging.ERROR, PLAIN, logging.WARNING, logging.INFO, logging.DEBUG)


class JsonHandler(logging.StreamHandler):
    """Lightweight JSON logger for stdout."""
    def __init__(self, stream: Optional[IO[str]] = None):
        super().__init__(stream=stream or sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            obj = {
                "ts": record.created,
                "lvl": record.levelname,
                "name": record.name,
                "msg": record.getMessage(),
            }
            tier = getattr(record, "tier", None)
            if tier is not None:
                obj["tier"] = tier
            self.stream.write(json.dumps(obj, ensure_ascii=False) + "\n")
            self.flush()
        except Exception:  # pragma: no cover
            self.handleError(record)


class TierFormatter(logging.Formatter):
    """Prefix each record with the label of its severity tier."""
    def format(self, record: logging.LogRecord) -> str:
        tier = getattr(record, "tier", LOG)
        return PREFIXES[tier] + record.getMessage()


def setup(level: Optional[str] = None, json_mode: Optional[bool] = None, *, force: bool = False) -> None:
    """Configure root logger.
    - Reads LOG_LEVEL, LOG_JSON from env if args are None
    - If already configured, do nothing unless force=True
    """
    global _configured
    if _configured and not force:
        return

    load_dotenv()

    lvl = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    py_level = logging.getLevelName(lvl)
    if not isinstance(py_level, int):
        py_level = logging.INFO

    json_flag = json_mode if json_mode is not None else (os.getenv("LOG_JSON", "0") == "1")

    root = logging.getLogger()
    # Reset handlers to avoid duplicate logs (pytest re-runs etc.)
    root.handlers.clear()
    root.setLevel(py_level)

    if json_flag:
        root.addHandler(JsonHandler())
    else:
        fmt = "[%(asctime)s] %(levelname)s %(name)s | %(message)s"
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=fmt))
        root.addHandler(handler)

    _configured = True


def get(name: str) -> logging.Logger:
    """Helper to get a namespaced logger."""
    return logging.getLogger(name)


def root_level_for(config: "LogConfig") -> Optional[str]:
    """Root level matching a leveled-logger config, None to keep the current one."""
    if config.quiet:
        return "ERROR"
    if config.level >= DEBUG:
        return "DEBUG"
    return None


def set_level(level: str) -> None:
    """Dynamically adjust root log level (e.g., during tests)."""
    py_level = logging.getLevelName(level.upper())
    logging.getLogger().setLevel(py_level if isinstance(py_level, int) else logging.INFO)


@dataclass
class LogConfig:
    level: int = 2
    quiet: bool = False


def clamp(level) -> int:
    """Force any level into [ERROR, DEBUG]; None or non-numbers mean LOG."""
    try:
        value = float(level)
    except (TypeError, ValueError):
        return LOG
    if math.isnan(value):
        return LOG
    return int(max(ERROR, min(DEBUG, value)))


class LeveledLogger:
    """
    Console logger gated by a numeric threshold and a quiet flag.

    Tiers: 0=ERROR, 1=plain, 2=WARN, 3=INFO, 4=DEBUG. A message is written
    when its tier is <= config.level; in quiet mode only tier 0 is written.
    Every call returns True, a suppressed message is not a failure.
    """

    def __init__(self, config: Optional[LogConfig] = None, *, name: str = "depviz",
                 stream: Optional[IO[str]] = None, json_mode: bool = False):
        self.config = config or LogConfig()
        # Private, unregistered logger: gating is done here, not by the root config
        self._logger = logging.Logger(f"{name}.console", logging.DEBUG)
        if json_mode:
            handler: logging.Handler = JsonHandler(stream)
        else:
            handler = logging.StreamHandler(stream=stream or sys.stdout)
            handler.setFormatter(TierFormatter())
        self._logger.addHandler(handler)

    def enabled(self, level: int) -> bool:
        level = clamp(level)
        if self.config.quiet:
            return level == ERROR
        return level <= self.config.level

    def log(self, message, level: int = LOG) -> bool:
        level = clamp(level)
        if self.enabled(level):
            self._logger.log(_PY_LEVELS[level], "%s", message, extra={"tier": level})
        return True

    def debug(self, message) -> bool:
        return self.log(message, DEBUG)

    def info(self, message) -> bool:
        return self.log(message, INFO)

    def warn(self, message) -> bool:
        return self.log(message, WARN)

    def error(self, message) -> bool:
        return self.log(message, ERROR)
