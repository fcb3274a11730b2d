#loadgen/core/logging.py
from __future__ import annotations

import json
import logging
import sys

from loadgen.core.config import GeneratorConfig

LOGGER_NAME = "loadgen"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(config: GeneratorConfig) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, config.log_level))

    # avoid duplicate handlers on repeated runs in one process
    if not logger.handlers:
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(sh)

        log_path = config.abs_log_path()
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(log_path, encoding="utf-8")
            fh.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(fh)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logger


def json_log(logger: logging.Logger, record: dict, level: int = logging.INFO):
    logger.log(level, json.dumps(record, ensure_ascii=False))
