# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""HTTP API for the chat relay service."""

from .main import create_app

__all__ = ["create_app"]
