"""Scenario prompts as YAML files with Jinja2 content.

The packaged ``templates/`` directory holds one YAML file per prompt. A
bare name such as ``"mcp_weather"`` resolves there; a string ending in
``.yaml``/``.yml`` or containing a slash is treated as a path (relative
paths are taken from the cwd).

YAML format::

    name: movie_recommendation
    version: "1.0"
    messages:
      - role: user
        content: "Recommend a classic {{ genre }} movie from the {{ decade }}"

Usage::

    from structured_probe.prompts import render_prompt

    messages = render_prompt("movie_recommendation", genre="sci-fi", decade="1980s")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from jinja2 import Environment, StrictUndefined

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

# Content strings are compiled one at a time; no loader, no inheritance.
_jinja = Environment(undefined=StrictUndefined, autoescape=False)


def available_templates() -> list[str]:
    """Names of the packaged prompt templates, sorted."""
    return sorted(p.stem for p in TEMPLATES_DIR.glob("*.yaml"))


def _resolve(template: str | Path) -> Path:
    if isinstance(template, str) and "/" not in template and not template.endswith((".yaml", ".yml")):
        return TEMPLATES_DIR / f"{template}.yaml"
    path = Path(template)
    return path if path.is_absolute() else Path.cwd() / path


def load_prompt_file(template: str | Path) -> list[dict[str, Any]]:
    """Read a prompt file and return its raw ``messages`` entries.

    Raises:
        FileNotFoundError: No template by that name or path.
        ValueError: The YAML is not a mapping with a list of role/content messages.
    """
    path = _resolve(template)
    if not path.is_file():
        raise FileNotFoundError(f"Prompt template not found: {path}")

    doc = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(doc, dict):
        raise ValueError(f"Prompt YAML must be a mapping, got {type(doc).__name__}: {path}")

    entries = doc.get("messages")
    if not entries:
        raise ValueError(f"Prompt YAML missing 'messages' key: {path}")
    if not isinstance(entries, list):
        raise ValueError(f"'messages' must be a list, got {type(entries).__name__}: {path}")

    for i, entry in enumerate(entries):
        if not isinstance(entry, dict) or not {"role", "content"} <= entry.keys():
            raise ValueError(f"Message {i} must have 'role' and 'content' keys: {path}")
    return entries


def render_prompt(template: str | Path, **context: Any) -> list[dict[str, str]]:
    """Render a prompt template into OpenAI chat messages.

    Missing variables raise ``jinja2.UndefinedError``.
    """
    entries = load_prompt_file(template)
    messages = [
        {
            "role": str(entry["role"]),
            "content": _jinja.from_string(str(entry["content"])).render(**context).strip(),
        }
        for entry in entries
    ]
    logger.debug("Rendered prompt %s (%d messages)", template, len(messages))
    return messages
