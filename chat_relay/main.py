# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Server entry point.

Usage:
    python -m chat_relay.main
"""

import logging

import uvicorn

from chat_relay.api.main import create_app
from chat_relay.core.config import settings
from chat_relay.core.logging import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    setup_logging()
    app = create_app()
    logger.info(f"Server is running at http://{settings.HOST}:{settings.PORT}")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    main()
