# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Core module for the chat relay service."""

from .config import settings

__all__ = ["settings"]
