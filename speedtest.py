#!/usr/bin/env python3
"""
netgauge CLI -- network quality testing from the terminal.

Usage::

    python speedtest.py                       # rich dashboard
    python speedtest.py --simple              # plain text
    python speedtest.py --json                # JSON to stdout
    python speedtest.py -o result.json        # save to file
    python speedtest.py --csv log.csv         # append CSV row
    python speedtest.py --duration 5 --connections 8
    python speedtest.py --no-bufferbloat      # skip the loaded-latency phase
    python speedtest.py --share               # print shareable text
    python speedtest.py --save-config         # persist the given options

Press Ctrl-C during a run to abort it: the run still finishes, reporting
anything it could not measure as estimated.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from typing import Any, Dict, Optional

from rich.logging import RichHandler

from netgauge.config import TestConfig, config_path, load_config, update_config
from netgauge.constants import DEFAULT_CONNECTIONS, DEFAULT_DURATION
from netgauge.engine import SpeedTestEngine
from netgauge.errors import ConfigError
from netgauge.grading import format_share_text
from netgauge.models import SpeedTestResult
from ui.dashboard import ProgressDisplay, console, print_final_results, print_graph, print_header
from ui.output import (
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_text_result,
    save_json,
)


# ---------------------------------------------------------------------------
# Setup helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _build_config(args: argparse.Namespace, stored: Dict[str, Any]) -> TestConfig:
    """Merge CLI overrides on top of the stored config; raise ``ConfigError``."""
    merged = dict(stored)
    if args.duration is not None:
        merged["duration"] = args.duration
    if args.connections is not None:
        merged["parallel_connections"] = args.connections
    if args.no_bufferbloat:
        merged["enable_bufferbloat"] = False
    return TestConfig.from_dict(merged).validate()


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedtest(
    config: TestConfig,
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    csv_file: Optional[str] = None,
    simple: bool = False,
    share: bool = False,
) -> Dict[str, Any]:
    """Execute one run and return its JSON-serialisable dict."""
    show_ui = not json_output and not simple

    display = ProgressDisplay() if show_ui else None
    engine = SpeedTestEngine(
        on_progress=display.on_progress if display else None,
        on_graph_update=display.on_graph_update if display else None,
        config=config,
    )

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, engine.abort)
        handles_sigint = True
    except (NotImplementedError, RuntimeError):
        handles_sigint = False

    if show_ui:
        print_header()
        display.start()
    try:
        result = await engine.run_speed_test()
    finally:
        if display:
            display.stop()
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)

    result_json = create_result_json(result, engine.graph.points)

    if show_ui:
        print_graph(engine.graph.points)
        print_final_results(result)
    elif simple:
        print(format_text_result(result))

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    if csv_file:
        _append_csv(csv_file, result)
        if not json_output:
            console.print(f"[green]CSV row appended to:[/green] {csv_file}")

    if share:
        text = format_share_text(result)
        if show_ui:
            from rich.panel import Panel
            console.print(Panel(text, title="Share This Result", border_style="cyan"))
        else:
            print("\n" + text)

    return result_json


def _append_csv(path: str, result: SpeedTestResult) -> None:
    """Append a single CSV row, writing the header if the file is new."""
    write_header = not os.path.isfile(path) or os.path.getsize(path) == 0
    with open(path, "a", encoding="utf-8") as fh:
        if write_header:
            fh.write(format_csv_header() + "\n")
        fh.write(format_csv_row(result) + "\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="netgauge -- latency, throughput, packet loss and bufferbloat over HTTP",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--csv", type=str, metavar="FILE", help="Append results as CSV row")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--share", action="store_true", help="Print shareable result text")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log probe activity")

    # Test parameters
    parser.add_argument(
        "--duration", type=float, default=None, metavar="SECS",
        help=f"Seconds per throughput phase (default: {DEFAULT_DURATION:.0f})",
    )
    parser.add_argument(
        "--connections", type=int, default=None, metavar="N",
        help=f"Concurrent connections (default: {DEFAULT_CONNECTIONS})",
    )
    parser.add_argument("--no-bufferbloat", action="store_true", help="Skip the latency-under-load phase")
    parser.add_argument("--save-config", action="store_true", help="Persist the test parameters and exit")
    return parser


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = _build_config(args, load_config())
    except ConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if args.save_config:
        update_config(config.to_dict())
        console.print(f"[green]Configuration saved to:[/green] {config_path()}")
        return

    try:
        asyncio.run(
            run_speedtest(
                config,
                json_output=args.json,
                output_file=args.output,
                csv_file=args.csv,
                simple=args.simple,
                share=args.share,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except IOError as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
