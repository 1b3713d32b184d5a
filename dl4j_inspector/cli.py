# dl4j_inspector/cli.py
"""
cli.py

Rich console CLI:
- inspect: decode a DL4J .zip or configuration .json, print summary, layers,
           weight statistics and diagnostics.
- infer:   run the approximate two-branch forward pass on an archive.
- sample:  write a sample archive.
- version: show the package version.
"""
from __future__ import annotations

import argparse
import os
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel

from dl4j_inspector import __version__
from dl4j_inspector.analysis.base import LAYER_SORT_KEYS
from dl4j_inspector.analysis.decoder import ArchiveDecodeError, DecoderOptions, decode_path
from dl4j_inspector.analysis.inference import (
    InferenceInput,
    expected_input_size,
    random_input,
    run_inference,
    select_starts,
)
from dl4j_inspector.logging import configure_logging
from dl4j_inspector.reporting import console as console_reporter
from dl4j_inspector.reporting.json_reporter import write_json
from dl4j_inspector.sample import build_sample_archive

console = Console()


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def _add_decode_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("path", help="Path to model archive (.zip | .json)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--seed", type=int, default=0, help="Seed for synthetic placeholder weights (default 0)"
    )
    p.add_argument("--bins", type=_positive_int, default=20, help="Histogram bins per weight group")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dl4jx",
        description="DL4J model archive inspector: layer graph, parameter counts, weight stats.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    sub = p.add_subparsers(dest="cmd", title="Available Commands", metavar="<command>")

    sp_inspect = sub.add_parser("inspect", help="Decode and report on a model archive")
    _add_decode_args(sp_inspect)
    sp_inspect.add_argument(
        "--json-out", type=str, default=None, help="Write JSON report to this path"
    )
    sp_inspect.add_argument(
        "--with-values",
        action="store_true",
        help="Include raw kernel/bias values and configuration in the JSON report",
    )
    sp_inspect.add_argument(
        "--sort",
        choices=sorted(LAYER_SORT_KEYS),
        default="name",
        help="Layer table sort column",
    )

    sp_infer = sub.add_parser("infer", help="Run the approximate forward pass")
    _add_decode_args(sp_infer)
    sp_infer.add_argument("--branch-a", type=str, default=None, help="Comma-separated floats")
    sp_infer.add_argument("--branch-b", type=str, default=None, help="Comma-separated floats")
    sp_infer.add_argument("--start-a", type=str, default=None, help="Start layer for branch A")
    sp_infer.add_argument("--start-b", type=str, default=None, help="Start layer for branch B")

    sp_sample = sub.add_parser("sample", help="Write a sample DL4J archive")
    sp_sample.add_argument("out", help="Output .zip path")
    sp_sample.add_argument("--branched", action="store_true", help="Two-branch layout")
    sp_sample.add_argument("--seed", type=int, default=0)

    sub.add_parser("version", help="Show the version of dl4j-inspector")

    return p


def _parse_vector(text: str) -> List[float]:
    return [float(v) for v in text.split(",") if v.strip()]


def _input_for(text: Optional[str], start, seed: int) -> List[float]:
    """Parse a CSV vector, or draw one sized for the branch start layer."""
    if text is not None:
        return _parse_vector(text)
    length = int(expected_input_size(start)) if start is not None else 0
    return random_input(length, seed=seed)


def _options(args) -> DecoderOptions:
    return DecoderOptions(seed=args.seed, histogram_bins=args.bins)


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "version":
        console.print(f"dl4j-inspector version {__version__}")
        return 0

    if args.cmd == "sample":
        with open(args.out, "wb") as f:
            f.write(build_sample_archive(seed=args.seed, branched=args.branched))
        console.print(f"[dim]Wrote sample archive → {args.out}[/dim]")
        return 0

    if args.cmd in ("inspect", "infer"):
        configure_logging(debug=args.debug)
        if not os.path.exists(args.path):
            console.print(f"[red]File not found:[/red] {args.path}")
            return 2
        try:
            result = decode_path(args.path, _options(args))
        except ArchiveDecodeError as e:
            console.print(f"[red]{e}[/red]")
            return 2

        if args.cmd == "inspect":
            ok = not result.summary.skipped_items and not result.summary.parameter_mismatch
            console.print(
                Panel(
                    f"[bold]Result:[/bold] {'[green]OK[/green]' if ok else '[yellow]WITH DIAGNOSTICS[/yellow]'}",
                    style="bold cyan",
                )
            )
            console_reporter.render_report(result, sort=args.sort)
            if args.json_out:
                write_json(result, args.json_out, include_values=args.with_values)
                console.print(f"[dim]Wrote JSON report → {args.json_out}[/dim]")
            return 0

        start_a, start_b = select_starts(result.layers, args.start_a, args.start_b)
        try:
            inputs = InferenceInput(
                branch_a=_input_for(args.branch_a, start_a, args.seed),
                branch_b=_input_for(args.branch_b, start_b, args.seed + 1),
            )
        except ValueError as e:
            console.print(f"[red]Invalid input vector:[/red] {e}")
            return 2
        inference = run_inference(
            result.layers, inputs, start_a=args.start_a, start_b=args.start_b
        )
        console_reporter.render_inference(inference)
        return 0

    parser.print_help()
    return 1
