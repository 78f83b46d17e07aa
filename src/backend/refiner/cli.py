"""
Command-line entry point.

Usage:
    prompt-refiner "write a function that sorts a list"
    prompt-refiner -f prompt.txt --mode thorough --json
    cat prompt.txt | prompt-refiner --strategy progressive --max-calls 3
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from refiner.agent.orchestrator import ConfigurationError, RefinementOrchestrator
from refiner.models.schemas import RefineRequest, RefinementOutcome, Strategy
from tracks.shared.modes import MODES


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prompt-refiner",
        description="Refine a prompt with a budget-constrained LLM oracle",
    )
    parser.add_argument("text", nargs="*", help="Prompt text (reads stdin if omitted)")
    parser.add_argument("-f", "--file", type=Path, default=None, help="Read the prompt from a file")
    parser.add_argument("--mode", choices=sorted(MODES), default=None, help="Budget mode")
    parser.add_argument(
        "--strategy", choices=[s.value for s in Strategy], default=None,
        help="Force a strategy instead of the mode's default",
    )
    parser.add_argument("--max-iterations", type=int, default=None)
    parser.add_argument("--max-calls", type=int, default=None, help="Cap on oracle calls")
    parser.add_argument("--target-quality", type=float, default=None)
    parser.add_argument("--json", action="store_true", help="Print the full outcome as JSON")
    parser.add_argument("--quiet", action="store_true")
    return parser


def read_input(args: argparse.Namespace) -> str:
    if args.file is not None:
        return args.file.read_text(encoding="utf-8")
    if args.text:
        return " ".join(args.text)
    return sys.stdin.read()


def build_request(args: argparse.Namespace, text: str) -> RefineRequest:
    overrides = {}
    if args.max_iterations is not None:
        overrides["max_iterations"] = args.max_iterations
    if args.max_calls is not None:
        overrides["max_oracle_calls"] = args.max_calls
    if args.target_quality is not None:
        overrides["target_quality"] = args.target_quality

    return RefineRequest(
        text=text,
        mode=args.mode,
        strategy=Strategy(args.strategy) if args.strategy else None,
        overrides=overrides,
    )


def print_summary(outcome: RefinementOutcome) -> None:
    print(f"\n{'='*60}")
    print(f"  Strategy: {outcome.strategy.value}  Mode: {outcome.mode}")
    print(f"  Static quality: {outcome.static_analysis.quality_scores.overall:.1f}/10")

    if outcome.self_refine is not None:
        r = outcome.self_refine
        print(f"  Iterations: {r.total_iterations}  Oracle calls: {r.total_oracle_calls}")
        print(f"  Final quality: {r.final_quality:.1f}/10 ({r.total_quality_gain:+.1f})")
        print(f"  Stopped: {r.convergence_reason.value}")
    if outcome.progressive is not None:
        r = outcome.progressive
        print(f"  Layers: {r.applied_layers}/{r.total_layers} applied, {r.skipped_layers} skipped")
        print(f"  Oracle calls: {r.total_oracle_calls}  Improvement: {r.overall_improvement:.2f}x")
        for layer in r.layer_results:
            detail = f" ({layer.skip_reason})" if layer.skip_reason else ""
            print(f"    {layer.layer_name:<24} {layer.status.value}{detail}")
    print(f"{'='*60}\n")


async def run(
    argv: Optional[List[str]] = None,
    orchestrator: Optional[RefinementOrchestrator] = None,
) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    text = read_input(args).strip()
    if not text:
        print("No prompt text given", file=sys.stderr)
        return 2

    try:
        orchestrator = orchestrator or RefinementOrchestrator()
        outcome = await orchestrator.run(build_request(args, text))
    except ConfigurationError as e:
        for error in e.errors:
            print(f"Invalid configuration: {error}", file=sys.stderr)
        return 2

    if args.json:
        print(outcome.model_dump_json(indent=2))
        return 0

    if not args.quiet:
        print_summary(outcome)
    print(outcome.final_text)
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    sys.exit(asyncio.run(run(argv)))


if __name__ == "__main__":
    main()
