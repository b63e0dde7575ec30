"""CLI entry point for the loopgate demo runner.

Usage:
    loopgate run a,b c                  # Cycle rounds [a, b] and [c] until stopped
    loopgate run a,b --rounds 3         # Stop after three rounds
    loopgate run a,b --paused           # Start paused; send SIGUSR1 to resume
    loopgate run a,b --delay 0.5 -v     # Slower steps, debug logging

While running, SIGUSR1 toggles pause/resume and SIGINT/SIGTERM stop the loop
at its next checkpoint.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

import anyio

from loopgate.config import LoopConfig
from loopgate.controller import LoopController
from loopgate.events import EventKind, LoopEvent


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="loopgate",
        description="Run a pauseable step loop over comma-separated batches",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run a demo loop")
    run_parser.add_argument(
        "batches",
        nargs="+",
        help="One batch per argument; step labels separated by commas",
    )
    run_parser.add_argument(
        "--delay",
        type=float,
        default=0.2,
        help="Simulated duration of each step in seconds (default: 0.2)",
    )
    run_parser.add_argument(
        "--rounds",
        type=int,
        default=None,
        help="Stop after this many rounds. Default: run until stopped",
    )
    run_parser.add_argument(
        "--paused",
        action="store_true",
        help="Start paused (resume with SIGUSR1)",
    )
    run_parser.add_argument("--name", type=str, default="demo", help="Loop name for logs")
    run_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "run":
        try:
            batches = parse_batches(args.batches)
            config = LoopConfig(name=args.name, max_rounds=args.rounds)
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)
        asyncio.run(_cmd_run(config, batches, delay=args.delay, start_paused=args.paused))


def parse_batches(raw: list[str]) -> list[list[str]]:
    """Split ``["a,b", "c"]`` into ``[["a", "b"], ["c"]]``.

    Blank labels are dropped, so ``""`` is an empty batch.
    """
    if not raw:
        raise ValueError("at least one batch is required")
    return [[label.strip() for label in item.split(",") if label.strip()] for item in raw]


async def _cmd_run(
    config: LoopConfig,
    batches: list[list[str]],
    *,
    delay: float,
    start_paused: bool,
) -> None:
    """Run the demo loop, wiring POSIX signals to the controller."""
    controller = LoopController(config)
    controller.events.on(_print_event, EventKind.PAUSE, EventKind.RESUME)

    async def execute(label: str) -> None:
        print(f"  step {label}")
        await anyio.sleep(delay)

    def toggle() -> None:
        if controller.paused:
            controller.resume()
        else:
            controller.pause()

    loop = asyncio.get_running_loop()
    installed: list[int] = []
    for signum, callback in (
        (signal.SIGINT, controller.stop),
        (signal.SIGTERM, controller.stop),
        (getattr(signal, "SIGUSR1", None), toggle),
    ):
        if signum is None:
            continue
        try:
            loop.add_signal_handler(signum, callback)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform / not the main thread
            continue
        installed.append(signum)

    if start_paused:
        controller.pause()

    try:
        result = await controller.run(batches, execute)
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)

    print(
        f"\nLoop '{config.name}' {result.reason}: "
        f"{result.steps_executed} step(s), {result.rounds_started} round(s), "
        f"{result.pause_count} pause(s) in {result.duration_seconds:.1f}s"
    )


def _print_event(event: LoopEvent) -> None:
    if event.kind == EventKind.PAUSE:
        print(f"  [paused at round={event.data.get('round')} step={event.data.get('step')}]")
    else:
        print("  [resumed]")


if __name__ == "__main__":
    main()
