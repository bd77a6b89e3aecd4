# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Configuration settings for the runtime."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Loaded from environment variables or a .env file when not provided."""

    LOG_LEVEL: str = "INFO"

    # Provider
    MODEL: str = "gpt-4o-mini"
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None  # any OpenAI compatible server
    PROVIDER_TIMEOUT: float = 120.0
    PROVIDER_MAX_RETRIES: int = 2
    PROVIDER_RETRY_BACKOFF: float = 1.0  # seconds, doubled on each retry

    # Agent loop
    TOOL_CALL_ENGINE: str = "native"  # native, structured_outputs, prompt_engineering
    MAX_ITERATIONS: int = 10
    MAX_EVENTS: int | None = None
    TEMPERATURE: float | None = None
    TOOL_TIMEOUT: float = 600.0

    # Planner
    PLANNER_STRATEGY: str | None = None  # default, sequentialThinking, structured
    PLANNER_MAX_STEPS: int = 3

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
