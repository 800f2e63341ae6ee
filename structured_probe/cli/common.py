"""Shared CLI helpers."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def load_data_file(path: str | Path) -> Any:
    """Read a JSON or YAML file (chosen by suffix, JSON otherwise).

    A missing or unparseable file prints an error and exits 1.
    """
    p = Path(path)
    if not p.is_file():
        print(f"No such file: {p}", file=sys.stderr)
        sys.exit(1)
    text = p.read_text(encoding="utf-8")
    is_yaml = p.suffix.lower() in (".yaml", ".yml")
    try:
        return yaml.safe_load(text) if is_yaml else json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        print(f"Invalid {'YAML' if is_yaml else 'JSON'} in {p}: {exc}", file=sys.stderr)
        sys.exit(1)


def positive_int(raw: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {raw!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return value


def split_keys(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [k.strip() for k in raw.split(",") if k.strip()]
