"""CLI command modules for ``python -m structured_probe``."""

from structured_probe.cli.classify import cmd_classify, register_parser as register_classify_parser
from structured_probe.cli.scenarios import (
    cmd_list,
    cmd_run,
    register_list_parser,
    register_run_parser,
)

__all__ = [
    "cmd_classify",
    "cmd_list",
    "cmd_run",
    "register_classify_parser",
    "register_list_parser",
    "register_run_parser",
]
