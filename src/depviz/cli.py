# src/depviz/cli.py
from __future__ import annotations

from typing import List, Optional

from depviz import config as cfgmod
from depviz.core import log
from depviz.core.log import LeveledLogger
from depviz.core.metrics import dump
from depviz.core.pubsub import TopicDispatcher
from depviz.server.httpd import PresentationServer


def main(argv: Optional[List[str]] = None) -> int:
    log.setup()
    try:
        cfg = cfgmod.from_args(argv)
    except cfgmod.ConfigError as e:
        LeveledLogger().error(str(e))
        return 2

    root_level = log.root_level_for(cfg.logs)
    if root_level:
        log.set_level(root_level)
    logger = LeveledLogger(cfg.logs)
    if cfg.database_active:
        logger.debug("database flag set")

    server = PresentationServer(cfg, logger, TopicDispatcher())
    try:
        server.serve_forever()
    except OSError:
        return 1
    except KeyboardInterrupt:
        logger.log("shutting down")
    finally:
        server.stop()
        dump(log.get("depviz.metrics"))
    return 0
