# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import pytest

from src.events import EventStream
from src.llm.base import CompletionChunk
from src.types.llm_types import ToolCallDelta


def pytest_addoption(parser):
    parser.addoption(
        "--run-llm",
        action="store_true",
        default=False,
        help="Run tests marked with 'uses_llm' (need OPENAI_API_KEY)",
    )
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run tests marked with 'slow'",
    )


# Skip tests based on markers unless the corresponding option is provided
def pytest_collection_modifyitems(config, items):
    if not config.getoption("--run-llm"):
        skip_llm = pytest.mark.skip(reason="need --run-llm option to run")
        for item in items:
            if "uses_llm" in item.keywords:
                item.add_marker(skip_llm)
    if not config.getoption("--run-slow"):
        skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture
def event_stream():
    return EventStream()


def tool_call_chunks(
    name: str,
    arguments: str,
    call_id: str = "call_1",
    index: int = 0,
    split: int = 5,
) -> list[CompletionChunk]:
    """Native tool call deltas: the id and name first, then the arguments in pieces."""
    chunks = [
        CompletionChunk(tool_calls=[ToolCallDelta(index=index, id=call_id, name=name)])
    ]
    for i in range(0, len(arguments), split):
        chunks.append(
            CompletionChunk(
                tool_calls=[ToolCallDelta(index=index, arguments=arguments[i : i + split])]
            )
        )
    chunks.append(CompletionChunk(finish_reason="tool_calls"))
    return chunks


@pytest.fixture
def make_tool_call_chunks():
    return tool_call_chunks
