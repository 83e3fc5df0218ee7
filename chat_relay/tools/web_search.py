# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Web search tool backed by the Tavily search API.

The tool is a pass-through: the provider's JSON response is returned as-is.
Every failure is reported as a JSON object with an ``error`` field so the
model can read it; the tool itself never raises.
"""

import json
import logging
from typing import Any

import httpx
from langchain_core.callbacks import CallbackManagerForToolRun
from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field

from chat_relay.core.config import settings

logger = logging.getLogger(__name__)

NOT_CONFIGURED_ERROR = "Web search is not available. API key not configured."
SEARCH_EXCEPTION_ERROR = "An error occurred during web search"


def _dump(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


class WebSearchInput(BaseModel):
    """Input schema for web search tool."""

    query: str = Field(description="Search query")


class WebSearchTool(BaseTool):
    """Live web search for questions about current events.

    The credential is injected at construction; ``api_key=None`` disables
    the tool without touching the network.
    """

    name: str = "web_search"
    description: str = (
        "Search the web for current information. Returns the search provider's "
        "answer together with the most relevant pages and their content."
    )
    args_schema: type[BaseModel] = WebSearchInput

    api_key: str | None = None
    search_url: str = "https://api.tavily.com/search"
    search_depth: str = "advanced"
    max_results: int = 5
    timeout: float = 30.0
    # Optional httpx transport, used to route requests in tests
    transport: Any = None

    def _run(
        self,
        query: str,
        run_manager: CallbackManagerForToolRun | None = None,
    ) -> str:
        """Synchronous run - not implemented, use async version."""
        raise NotImplementedError("WebSearchTool only supports async execution")

    async def _arun(
        self,
        query: str,
        run_manager: CallbackManagerForToolRun | None = None,
    ) -> str:
        return await self.search(query)

    async def search(self, query: str) -> str:
        """Run a search.

        Args:
            query: Search query

        Returns:
            JSON string with the provider response, or an ``error`` object
        """
        if not self.api_key:
            return _dump({"error": NOT_CONFIGURED_ERROR})

        logger.info(f"[WebSearchTool] Performing web search for query: {query[:50]}")

        payload = {
            "query": query,
            "search_depth": self.search_depth,
            "max_results": self.max_results,
            "include_answer": True,
            "include_raw_content": True,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    self.search_url, json=payload, headers=headers
                )

                if not response.is_success:
                    logger.warning(
                        f"[WebSearchTool] Search failed for query {query[:50]}: "
                        f"{response.status_code} {response.text[:200]}"
                    )
                    return _dump(
                        {"error": f"Search failed with Status: {response.status_code}"}
                    )

                data = response.json()

        except Exception as e:
            logger.error(
                f"[WebSearchTool] An exception occurred during web search for {query[:50]}: {e}",
                exc_info=True,
            )
            return _dump({"error": SEARCH_EXCEPTION_ERROR})

        logger.info(f"[WebSearchTool] Search successful for query: {query[:50]}")
        return _dump(data)


def create_web_search_tool(**overrides: Any) -> WebSearchTool:
    """Build the tool from settings, resolving the credential once."""
    config = {
        "api_key": settings.TAVILY_API_KEY or None,
        "search_url": settings.TAVILY_SEARCH_URL,
        "search_depth": settings.WEB_SEARCH_DEPTH,
        "max_results": settings.WEB_SEARCH_MAX_RESULTS,
        "timeout": settings.WEB_SEARCH_TIMEOUT,
    }
    config.update(overrides)
    return WebSearchTool(**config)
