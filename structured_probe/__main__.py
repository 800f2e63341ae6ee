"""Reproduction runner for structured-output and tool-calling defects.

Usage:
    python -m structured_probe list
    python -m structured_probe list --format json

    python -m structured_probe run gemini-structured-output
    python -m structured_probe run mcp-strict-tools --openai-model gpt-4.1
    python -m structured_probe run mcp-structured-output --env-file ~/.secrets/probe.env

    python -m structured_probe classify trace.json --expected-keys title,year,genre
    python -m structured_probe classify trace.yaml --marker extract --marker MovieRecommendation
    python -m structured_probe classify trace.json --structured parsed.json --format json
"""

from __future__ import annotations

import argparse
import sys

from structured_probe.cli import (
    cmd_classify,
    cmd_list,
    cmd_run,
    register_classify_parser,
    register_list_parser,
    register_run_parser,
)
from structured_probe.cli.common import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="structured_probe",
        description="Reproduce and classify structured-output strategy failures",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", help="Available commands")

    register_list_parser(sub)
    register_run_parser(sub)
    register_classify_parser(sub)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.verbose)

    if args.command == "list":
        cmd_list(args)
    elif args.command == "run":
        cmd_run(args)
    elif args.command == "classify":
        cmd_classify(args)


if __name__ == "__main__":
    main()
