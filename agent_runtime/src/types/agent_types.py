# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from typing import Any, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class AgentStatus(str, Enum):
    """Possible terminal states of an agent run."""

    SUCCESS = "success"
    ERROR = "error"
    RUNNING = "running"
    ABORTED = "aborted"  # cancellation; not an error
    MAX_ITERATIONS = "max_iterations"  # capped out before the model finished


class AgentLoopState(str, Enum):
    """Where the orchestrator is within a run."""

    IDLE = "idle"
    RUNNING = "running"
    TOOL_DISPATCH = "tool_dispatch"
    TERMINATING = "terminating"
    ABORTED = "aborted"


class LoopTerminationCheckResult(BaseModel):
    """Verdict of a before-loop-termination hook."""

    finished: bool = True
    message: Optional[str] = None
    analysis: Optional[str] = None  # reasoning behind a reflection verdict


class AgentMetrics(BaseModel):
    """Metrics about the agent execution."""

    start_time: datetime
    end_time: Optional[datetime] = None
    iterations: int = 0
    tool_calls: int = 0
    provider_requests: int = 0
    provider_retries: int = 0

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate execution duration if completed."""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None


class AgentResult(BaseModel):
    """
    The final response of a non-streaming run.

    Carries the terminal status, the final assistant content and some metrics
    about the execution.
    """

    session_id: str
    status: AgentStatus
    content: str = ""
    iterations: int = 0
    elapsed_ms: int = 0
    metrics: AgentMetrics
    errors: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        parts = [
            f"status: {self.status.value}",
            f"iterations: {self.iterations}",
            f"elapsed: {self.elapsed_ms}ms",
        ]
        if self.errors:
            parts.append(f"errors: {self.errors}")
        parts.append(self.content)
        return "\n".join(parts)
