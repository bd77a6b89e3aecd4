# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Provider-specific implementations for different LLM services."""

from .base_provider import BaseProvider
from .openai import OpenAIProvider
from .replay import ReplayProvider, text_chunks

__all__ = [
    "BaseProvider",
    "OpenAIProvider",
    "ReplayProvider",
    "text_chunks",
]
