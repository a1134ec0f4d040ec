# src/depviz/config.py
from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from depviz.core.log import LogConfig

DEFAULT_PORT = 4488


class ConfigError(ValueError):
    """Raised when startup configuration cannot be built."""


@dataclass
class ServerConfig:
    port: int = DEFAULT_PORT
    host: str = ""
    request_id_length: int = 12
    database_active: bool = False
    logs: LogConfig = field(default_factory=LogConfig)


def _int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid {name}: {value!r}") from None


def _port(value: Any) -> int:
    port = _int("port", value)
    if not 0 <= port <= 65535:
        raise ConfigError(f"port out of range: {port}")
    return port


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="depviz-server",
        description="Dependency Visualizer presentation server.",
        usage="%(prog)s [-d|--database] [-p|--port port] [-q|--quiet] [-v verbosity] [--config file]",
    )
    p.add_argument("-d", "--database", action="store_true", help="enable the database integration flag")
    p.add_argument("-p", "--port", default=None, help=f"listen port (default {DEFAULT_PORT})")
    p.add_argument("-q", "--quiet", action="store_true", help="only log errors")
    p.add_argument("-v", "--verbose", action="count", default=0, help="raise log level (repeatable)")
    p.add_argument("--config", default=None, help="YAML config file")
    return p


def load_yaml(path: str) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must be a mapping")
    return data


def apply_mapping(cfg: ServerConfig, data: Dict[str, Any]) -> ServerConfig:
    if "port" in data:
        cfg.port = _port(data["port"])
    if "host" in data:
        cfg.host = str(data["host"] or "")
    if "request_id_length" in data:
        cfg.request_id_length = _int("request_id_length", data["request_id_length"])
        if cfg.request_id_length < 1:
            raise ConfigError(f"request_id_length must be >= 1: {cfg.request_id_length}")
    if "database" in data:
        cfg.database_active = bool(data["database"])
    logs = data.get("logs") or {}
    if "level" in logs:
        cfg.logs.level = _int("logs.level", logs["level"])
    if "quiet" in logs:
        cfg.logs.quiet = bool(logs["quiet"])
    return cfg


def from_args(argv: Optional[List[str]] = None, env: Optional[Dict[str, str]] = None) -> ServerConfig:
    """Defaults < YAML file < environment < command-line flags."""
    args = build_parser().parse_args(argv)
    env = os.environ if env is None else env

    cfg = ServerConfig()
    if args.config:
        apply_mapping(cfg, load_yaml(args.config))
    if env.get("DEPVIZ_PORT"):
        cfg.port = _port(env["DEPVIZ_PORT"])
    if env.get("DEPVIZ_HOST"):
        cfg.host = env["DEPVIZ_HOST"]

    if args.database:
        cfg.database_active = True
    if args.port is not None:
        cfg.port = _port(args.port)
    if args.quiet:
        cfg.logs.quiet = True
    if args.verbose:
        cfg.logs.level = args.verbose + 1
    return cfg
