"""SegFeed CLI entry points.

This module exposes inspection commands for reader configs and epoch
plans. It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from typing import Any, Sequence

from core.config import load_feed_config
from core.constants import FULL_DATASET_EPOCH
from core.errors import SegFeedConfigError
from core.types import EpochConfiguration, StreamDescription
from feed.data_source import ImageDatasetFeed
from feed.epoch_planner import EpochPlanner


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="segfeed", description="SegFeed image dataset feed CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_describe_command(subparsers)
    _add_plan_command(subparsers)
    _add_run_epoch_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the SegFeed CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "describe":
        return _run_describe_command(args)
    if args.command == "plan":
        return _run_plan_command(args)
    if args.command == "run-epoch":
        return _run_run_epoch_command(args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _run_describe_command(args: argparse.Namespace) -> int:
    """Print input and output stream descriptions of a reader config."""
    feed = ImageDatasetFeed(load_feed_config(args.config))
    print("input")
    for stream in feed.stream_descriptions():
        print(_format_stream(stream))
    print("output")
    for stream in feed.output_stream_descriptions():
        print(_format_stream(stream))
    return 0


def _run_plan_command(args: argparse.Namespace) -> int:
    """Print every rank's epoch share for an epoch size."""
    if args.workers < 1:
        raise SegFeedConfigError(f"--workers must be at least 1, got {args.workers}.")
    for worker_rank in range(args.workers):
        planner = EpochPlanner(worker_rank=worker_rank, worker_count=args.workers)
        state = planner.start_epoch(
            EpochConfiguration(
                worker_rank=worker_rank,
                worker_count=args.workers,
                minibatch_size=args.minibatch_size,
                total_epoch_samples=args.epoch_size,
            ),
            dataset_example_count=args.epoch_size,
        )
        print(f"{worker_rank}\t{state.epoch_size}\t{str(state.append_last_minibatch).lower()}")
    return 0


def _run_run_epoch_command(args: argparse.Namespace) -> int:
    """Drive one epoch through the feed and print minibatch sample counts."""
    config = load_feed_config(args.config)
    feed = ImageDatasetFeed(config)
    feed.start_epoch(
        EpochConfiguration(
            worker_rank=config.worker_rank,
            worker_count=config.worker_count,
            minibatch_size=args.minibatch_size,
            total_epoch_samples=(
                FULL_DATASET_EPOCH if args.epoch_size is None else args.epoch_size
            ),
        )
    )
    total_samples = 0
    for minibatch_index, sequences in enumerate(feed.iter_epoch(args.minibatch_size), start=1):
        total_samples += sequences.sample_count
        print(f"{minibatch_index}\t{sequences.sample_count}\t{str(sequences.end_of_epoch).lower()}")
    print(f"total_samples={total_samples}")
    return 0


def _format_stream(stream: StreamDescription) -> str:
    layout = "x".join(str(axis) for axis in stream.sample_layout)
    return f"{stream.id}\t{stream.name}\t{stream.storage}\t{layout}"


def _add_describe_command(subparsers: Any) -> None:
    """Register describe subcommand."""
    parser = subparsers.add_parser("describe", help="Print stream descriptions of a reader config")
    parser.add_argument("config", help="YAML reader config path")


def _add_plan_command(subparsers: Any) -> None:
    """Register plan subcommand."""
    parser = subparsers.add_parser("plan", help="Print per-worker epoch shares")
    parser.add_argument("--epoch-size", type=int, required=True, help="Samples over all workers")
    parser.add_argument("--minibatch-size", type=int, required=True, help="Global minibatch size")
    parser.add_argument("--workers", type=int, required=True, help="Number of workers")


def _add_run_epoch_command(subparsers: Any) -> None:
    """Register run-epoch subcommand."""
    parser = subparsers.add_parser("run-epoch", help="Drive one epoch through the feed")
    parser.add_argument("config", help="YAML reader config path")
    parser.add_argument("--minibatch-size", type=int, required=True, help="Global minibatch size")
    parser.add_argument(
        "--epoch-size",
        type=int,
        help="Samples over all workers; the full dataset when omitted",
    )
