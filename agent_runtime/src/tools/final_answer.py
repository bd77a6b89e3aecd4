# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
A tool through which the model submits its final answer (e.g. a research
report). Submitting publishes a final_answer event on the session stream.

Combine with `RequireToolCallHook("final_answer")` to stop the loop from
terminating until the answer has been submitted.
"""
import logging

from typing import Literal, Optional
from pydantic import BaseModel, Field

from .base_tool import Tool
from ..events.event_stream import EventStream
from ..types.event_types import EventType
from ..types.llm_types import generate_message_id

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

FINAL_ANSWER_TOOL_NAME = "final_answer"


class FinalAnswerArgs(BaseModel):
    answer: str = Field(..., description="The complete final answer or report for the user")
    title: Optional[str] = Field(default=None, description="A short title for the answer")
    format: Literal["markdown", "text"] = Field(
        default="markdown", description="How the answer is formatted"
    )


def final_answer_tool(event_stream: EventStream) -> Tool:
    """Create the final answer tool, bound to one session's stream."""

    def submit(answer: str, title: str | None = None, format: str = "markdown") -> dict:
        event = event_stream.create_event(
            EventType.FINAL_ANSWER,
            content=answer,
            message_id=generate_message_id(),
            title=title,
            format=format,
        )
        event_stream.send_event(event)
        logger.info(f"Final answer submitted ({len(answer)} chars)")
        return {"status": "submitted", "message": "Final answer recorded."}

    return Tool(
        name=FINAL_ANSWER_TOOL_NAME,
        description=(
            "Submit your final, complete answer to the user. Call this exactly once, "
            "when the task is done."
        ),
        parameters=FinalAnswerArgs,
        function=submit,
    )
