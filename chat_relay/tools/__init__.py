# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Tools the generation backend can call during a run."""

from .web_search import WebSearchInput, WebSearchTool, create_web_search_tool

__all__ = ["WebSearchInput", "WebSearchTool", "create_web_search_tool"]
