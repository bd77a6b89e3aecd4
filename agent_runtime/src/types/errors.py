# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Exception hierarchy shared across the runtime."""


class AgentRuntimeError(Exception):
    """Base class for all runtime errors."""


class EventValidationError(AgentRuntimeError, ValueError):
    """Raised when an event is missing required payload fields."""


class DuplicateToolError(AgentRuntimeError, ValueError):
    """Raised when a tool name is registered twice."""


class RegistryFrozenError(AgentRuntimeError, RuntimeError):
    """Raised when a frozen tool registry is mutated (e.g. during a run)."""


class ToolCallEngineError(AgentRuntimeError):
    """Raised by an engine's finalize step when its buffer is unrecoverable."""


class ProviderError(AgentRuntimeError):
    """A failure talking to the model provider.

    Args:
        message: human readable description
        transient: whether retrying the request could succeed (timeouts,
            rate limits, connection resets, 5xx responses)
    """

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient
