"""Scenario listing and execution commands."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from typing import Any

from structured_probe.config import ProbeConfig, load_env_file
from structured_probe.scenarios import SCENARIOS, run_scenario


def cmd_list(args: argparse.Namespace) -> None:
    scenarios = sorted(SCENARIOS.values(), key=lambda s: s.name)
    if args.format == "json":
        print(json.dumps(
            [{"name": s.name, "title": s.title, "description": s.description} for s in scenarios],
            indent=2,
        ))
        return
    width = max(len(s.name) for s in scenarios)
    for s in scenarios:
        print(f"{s.name:<{width}}  {s.title}")


def cmd_run(args: argparse.Namespace) -> None:
    if args.scenario not in SCENARIOS:
        print(
            f"Unknown scenario: {args.scenario!r}. Valid: {', '.join(sorted(SCENARIOS))}",
            file=sys.stderr,
        )
        sys.exit(1)

    load_env_file(args.env_file)
    config = ProbeConfig.from_env()
    overrides = {}
    if args.openai_model:
        overrides["openai_model"] = args.openai_model
    if args.gemini_model:
        overrides["gemini_model"] = args.gemini_model
    if overrides:
        config = dataclasses.replace(config, **overrides)

    outcomes = asyncio.run(run_scenario(args.scenario, config))

    failed = [o for o in outcomes if not o.ok]
    print()
    print(f"{len(outcomes) - len(failed)}/{len(outcomes)} cases completed without error")
    if failed:
        sys.exit(1)


def register_list_parser(sub: Any) -> None:
    p = sub.add_parser("list", help="List available reproduction scenarios")
    p.add_argument("--format", choices=["table", "json"], default="table", help="Output format")


def register_run_parser(sub: Any) -> None:
    p = sub.add_parser("run", help="Run a reproduction scenario against real providers")
    p.add_argument("scenario", help="Scenario name (see 'list')")
    p.add_argument("--openai-model", help="Override PROBE_OPENAI_MODEL")
    p.add_argument("--gemini-model", help="Override PROBE_GEMINI_MODEL")
    p.add_argument("--env-file", help="KEY=VALUE file to load first (default: $PROBE_ENV_FILE or ./.env)")
