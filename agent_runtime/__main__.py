# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Main entrypoint when running the runtime with `python -m agent_runtime`.
"""

import asyncio
import argparse
import logging

from pathlib import Path

from .agent import AgentRunner, build_provider
from .src.tool_call_engine import engine_registry
from .src.planner.strategies import strategy_registry

logger = logging.getLogger(__name__)


def setup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the agent on a single prompt")
    prompt = run_parser.add_mutually_exclusive_group(required=True)
    prompt.add_argument("-p", "--prompt", type=str, help="The user prompt")
    prompt.add_argument(
        "--prompt-file",
        type=str,
        help="A file containing the prompt; useful for longer prompts",
    )
    run_parser.add_argument(
        "--engine",
        type=str,
        default=None,
        help=f"Tool call engine, one of {sorted(engine_registry)} (defaults to TOOL_CALL_ENGINE)",
    )
    run_parser.add_argument(
        "--planner",
        type=str,
        default=None,
        help=f"Planner strategy, one of {sorted(strategy_registry)}; no planner when omitted",
    )
    run_parser.add_argument("--model", type=str, default=None, help="Model name (defaults to MODEL)")
    run_parser.add_argument("--max-iterations", type=int, default=None)
    run_parser.add_argument("--stream", action="store_true", help="Print content deltas as they arrive")
    run_parser.add_argument(
        "--require-final-answer",
        action="store_true",
        help="Do not let the run finish until the final_answer tool has been called",
    )
    run_parser.add_argument(
        "--save-events",
        type=str,
        default=None,
        help="Write the session's event log (JSON lines) to this path",
    )
    run_parser.add_argument(
        "--replay",
        type=str,
        default=None,
        help="Replay scripted responses from a JSON file instead of calling a provider",
    )
    run_parser.add_argument("-q", "--quiet", action="store_true", help="Do not mirror events to stdout")

    return parser


async def run(args: argparse.Namespace) -> int:
    prompt = args.prompt if args.prompt is not None else Path(args.prompt_file).read_text()

    runner = AgentRunner(
        provider=build_provider(args.replay),
        engine=args.engine,
        planner=args.planner,
        max_iterations=args.max_iterations,
        model=args.model,
        require_final_answer=args.require_final_answer,
        quiet=args.quiet,
    )
    try:
        result = await runner.exec(prompt, stream=args.stream)
    finally:
        if args.save_events:
            runner.save_events(args.save_events)

    print(result)
    return 0 if result.status.value == "success" else 1


async def main() -> int:
    parser = setup_parser()
    args = parser.parse_args()

    if args.command == "run":
        return await run(args)
    return 2


def cli() -> None:
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
