"""Command-line interface for solving Advent of Code puzzles end to end."""

from __future__ import annotations

import argparse
import sys

from dotenv import load_dotenv

from .aoc_api import AdventOfCodeClient
from .client import OpenAICompatChatClient
from .config import PuzzleIdentity, Settings, resolve_identity
from .generator import SolutionGenerator
from .harness import TOOLCHAINS, BuildRunHarness, HarnessPolicy, get_toolchain
from .langgraph_solver import LangGraphPuzzleSolver
from .pipeline import WorkspaceLayout
from .solver import PuzzleSolver, SolverConfig


def _add_identity_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--year", type=int, default=None, help="Puzzle year (default: $YEAR or 2025).")
    parser.add_argument(
        "--day",
        type=int,
        default=None,
        help="Puzzle day (default: $DAY_OVERRIDE, else today's date in December, else 1).",
    )
    parser.add_argument("--root", default=".", help="Directory holding inputs/ and solutions/.")
    parser.add_argument("--request-timeout", type=float, default=30.0, help="Platform request timeout (s).")


def _identity_from_args(args: argparse.Namespace, settings: Settings) -> PuzzleIdentity:
    return resolve_identity(settings, year=args.year, day=args.day)


def _build_platform(args: argparse.Namespace, settings: Settings) -> AdventOfCodeClient:
    return AdventOfCodeClient(settings.session, timeout_sec=args.request_timeout)


def _build_solver_from_args(args: argparse.Namespace, settings: Settings) -> PuzzleSolver:
    toolchain = get_toolchain(args.toolchain or settings.toolchain)

    client = OpenAICompatChatClient(
        base_url=args.base_url or settings.base_url,
        model=args.model or settings.model,
        api_key=settings.api_key,
        timeout_sec=args.generation_timeout,
        max_retries=args.client_max_retries,
    )
    generator = SolutionGenerator(
        client,
        language=toolchain.language,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
    )
    harness = BuildRunHarness(
        toolchain,
        HarnessPolicy(
            compile_timeout_sec=args.compile_timeout,
            run_timeout_sec=args.run_timeout,
        ),
    )
    layout = WorkspaceLayout(args.root, source_template=toolchain.source_template)
    config = SolverConfig(part2_delay_sec=args.part2_delay_sec)

    solver_cls = LangGraphPuzzleSolver if args.orchestrator == "langgraph" else PuzzleSolver
    return solver_cls(
        _build_platform(args, settings),
        generator,
        harness,
        layout,
        config=config,
    )


def cmd_run(args: argparse.Namespace) -> None:
    settings = Settings.from_env()
    identity = _identity_from_args(args, settings)
    solver = _build_solver_from_args(args, settings)

    print(f"Solving Advent of Code {identity.year} day {identity.day}...", flush=True)
    report = solver.run(identity)

    part1 = report.record.part1
    print(f"Part 1: answer={part1.answer} submitted={part1.submitted} ({part1.message})")
    if report.record.part2 is not None:
        part2 = report.record.part2
        print(f"Part 2: answer={part2.answer} submitted={part2.submitted} ({part2.message})")
    print(f"Run finished with status '{report.status}'. Record: {report.record_path}")


def cmd_fetch(args: argparse.Namespace) -> None:
    settings = Settings.from_env()
    identity = _identity_from_args(args, settings)
    platform = _build_platform(args, settings)
    layout = WorkspaceLayout(args.root)
    layout.ensure_dirs()

    input_path = layout.write_input(identity, platform.fetch_input(identity))
    print(f"Downloaded input to {input_path}")

    description = platform.fetch_description(identity, full_statement=args.full)
    description_path = layout.write_description(identity, description)
    print(f"Saved description to {description_path}")


def cmd_submit(args: argparse.Namespace) -> None:
    settings = Settings.from_env()
    identity = _identity_from_args(args, settings)
    platform = _build_platform(args, settings)

    outcome = platform.submit_answer(identity, args.part, args.answer)
    status = "accepted" if outcome.accepted else "not accepted"
    print(f"Part {args.part} answer {args.answer!r} {status}: {outcome.message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Advent of Code auto-solver CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Fetch, generate, build, run and submit both parts")
    _add_identity_args(run)
    run.add_argument(
        "--toolchain",
        choices=sorted(TOOLCHAINS),
        default=None,
        help="Target language toolchain (default: $AOC_TOOLCHAIN or kotlin).",
    )
    run.add_argument("--model", default=None)
    run.add_argument("--base-url", default=None)
    run.add_argument("--temperature", type=float, default=None)
    run.add_argument("--max-tokens", type=int, default=None)
    run.add_argument("--generation-timeout", type=int, default=600)
    run.add_argument("--client-max-retries", type=int, default=0)
    run.add_argument("--compile-timeout", type=float, default=300.0)
    run.add_argument("--run-timeout", type=float, default=300.0)
    run.add_argument(
        "--part2-delay-sec",
        type=float,
        default=SolverConfig.part2_delay_sec,
        help="Pause between Part 1 acceptance and fetching Part 2.",
    )
    run.add_argument(
        "--orchestrator",
        choices=["classic", "langgraph"],
        default="classic",
        help="Runtime: classic sequential runner or LangGraph state machine.",
    )
    run.set_defaults(func=cmd_run)

    fetch = sub.add_parser("fetch", help="Download the puzzle input and description only")
    _add_identity_args(fetch)
    fetch.add_argument("--full", action="store_true", help="Fetch both parts of the description.")
    fetch.set_defaults(func=cmd_fetch)

    submit = sub.add_parser("submit", help="Submit an answer manually and classify the response")
    _add_identity_args(submit)
    submit.add_argument("--part", type=int, choices=[1, 2], required=True)
    submit.add_argument("answer")
    submit.set_defaults(func=cmd_submit)

    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv(override=False)
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except Exception as exc:
        print(f"Error in aocpilot: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
