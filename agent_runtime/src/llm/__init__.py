# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""LLM integration module.

Streaming chunk models and the providers that produce them. Provider request
parameters are built by the tool-call engines.
"""

from .base import CompletionChunk
from .providers import BaseProvider, OpenAIProvider, ReplayProvider

__all__ = [
    "CompletionChunk",
    "BaseProvider",
    "OpenAIProvider",
    "ReplayProvider",
]
