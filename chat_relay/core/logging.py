# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Logging configuration for the chat relay service."""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-4s [%(name)s] : %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "aiohttp.access")


def setup_logging(level: Optional[str] = None) -> None:
    """Send all records, uvicorn's included, to one stdout handler.

    Args:
        level: Log level name. Falls back to ``settings.LOG_LEVEL``; the
            ``LOG_LEVEL=DEBUG`` environment variable always wins.
    """
    from chat_relay.core.config import settings

    level_name = (level or settings.LOG_LEVEL).upper()
    if os.environ.get("LOG_LEVEL", "").upper() == "DEBUG":
        level_name = "DEBUG"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
