# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import json

from typing import Any, Optional
from pydantic import BaseModel


class ToolResult(BaseModel):
    """Represents the result of a tool execution."""

    tool_call_id: str
    tool_name: str
    success: bool
    output: Any = None
    error: Optional[str] = None
    elapsed_ms: int = 0  # on tool error paths, elapsed time is often 0

    def output_str(self) -> str:
        if self.output is None:
            return ""
        if isinstance(self.output, str):
            return self.output
        try:
            return json.dumps(self.output, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(self.output)

    def output_json(self) -> Any:
        """The output in JSON-native form, as stored in tool_result events."""
        if self.output is None or isinstance(self.output, (str, int, float, bool)):
            return self.output
        text = self.output_str()
        try:
            return json.loads(text)
        except ValueError:
            return text

    def to_plain_string(self) -> str:
        """The text the model sees for this result on the next turn."""
        if self.error is not None:
            return f"Error: {self.error}"
        return self.output_str()

    def __str__(self):
        tool_response_str = f"{self.tool_name} response:"
        tool_response_str += f"\nSuccess: {self.success}"
        if self.output is not None:
            tool_response_str += f"\nResult: {self.output_str()}"
        if self.error is not None:
            tool_response_str += f"\nErrors: {self.error}"
        tool_response_str += f"\nElapsed: {self.elapsed_ms}ms"
        return tool_response_str
