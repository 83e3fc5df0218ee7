# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Configuration for the chat relay service."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_relay.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Project configuration
    PROJECT_NAME: str = "Chat Relay"
    VERSION: str = "1.0.0"

    # HTTP server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Chat platform credentials
    STREAM_API_KEY: Optional[str] = None
    STREAM_API_SECRET: Optional[str] = None
    STREAM_AI_USER_ID: str = "ai-bot"  # User the AI replies are sent as

    # LLM backend credentials
    OPENAI_API_KEY: Optional[str] = None

    # Streaming configuration
    STREAMING_UPDATE_INTERVAL: float = 1.0  # Min seconds between partial updates

    # Web search configuration (tool is disabled when the key is absent)
    TAVILY_API_KEY: Optional[str] = None
    TAVILY_SEARCH_URL: str = "https://api.tavily.com/search"
    WEB_SEARCH_DEPTH: str = "advanced"
    WEB_SEARCH_MAX_RESULTS: int = 5
    WEB_SEARCH_TIMEOUT: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"

    def require_chat_credentials(self) -> tuple[str, str]:
        """Return the chat platform key and secret, failing if either is unset."""
        if not self.STREAM_API_KEY or not self.STREAM_API_SECRET:
            raise ConfigurationError("Missing Required Env Variables")
        return self.STREAM_API_KEY, self.STREAM_API_SECRET


settings = Settings()
