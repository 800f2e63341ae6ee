"""Typed runtime configuration for structured_probe."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlencode

from structured_probe.errors import ProbeConfigurationError

logger = logging.getLogger(__name__)

ENV_FILE_ENV = "PROBE_ENV_FILE"
OPENAI_MODEL_ENV = "PROBE_OPENAI_MODEL"
GEMINI_MODEL_ENV = "PROBE_GEMINI_MODEL"
TAVILY_API_KEY_ENV = "TAVILY_API_KEY"
TAVILY_MCP_URL_ENV = "PROBE_TAVILY_MCP_URL"
TIMEOUT_ENV = "PROBE_TIMEOUT"
PREVIEW_CHARS_ENV = "PROBE_PREVIEW_CHARS"

DEFAULT_OPENAI_MODEL = "gpt-5.1"
DEFAULT_GEMINI_MODEL = "gemini/gemini-3-pro-preview"
DEFAULT_TAVILY_MCP_URL = "https://mcp.tavily.com/mcp/"
DEFAULT_TIMEOUT = 60
DEFAULT_PREVIEW_CHARS = 200


def load_env_file(path: str | Path | None = None) -> list[str]:
    """Load KEY=VALUE lines from an env file into os.environ.

    Reads ``path``, else $PROBE_ENV_FILE, else ``./.env``. Skips comments,
    blank lines and keys already set in the environment.
    Returns the names of the keys that were loaded.
    """
    env_path = Path(path or os.environ.get(ENV_FILE_ENV, ".env"))
    if not env_path.is_file():
        return []
    loaded: list[str] = []
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[7:]
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip().strip("\"'")
        if key and key not in os.environ:
            os.environ[key] = value
            loaded.append(key)
    if loaded:
        logger.debug("Loaded %d keys from %s", len(loaded), env_path)
    return loaded


def _positive_int(env_name: str, default: int) -> int:
    raw = os.environ.get(env_name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value <= 0:
        logger.warning(
            "Invalid %s=%r; expected a positive integer. Defaulting to %d.",
            env_name,
            raw,
            default,
        )
        return default
    return value


@dataclass(frozen=True)
class ProbeConfig:
    """Scenario settings resolved once and passed explicitly."""

    openai_model: str = DEFAULT_OPENAI_MODEL
    gemini_model: str = DEFAULT_GEMINI_MODEL
    tavily_api_key: str | None = None
    tavily_mcp_url: str = DEFAULT_TAVILY_MCP_URL
    timeout: int = DEFAULT_TIMEOUT
    preview_chars: int = DEFAULT_PREVIEW_CHARS

    @classmethod
    def from_env(cls) -> "ProbeConfig":
        """Build typed config from environment variables."""
        return cls(
            openai_model=os.environ.get(OPENAI_MODEL_ENV, DEFAULT_OPENAI_MODEL),
            gemini_model=os.environ.get(GEMINI_MODEL_ENV, DEFAULT_GEMINI_MODEL),
            tavily_api_key=os.environ.get(TAVILY_API_KEY_ENV) or None,
            tavily_mcp_url=os.environ.get(TAVILY_MCP_URL_ENV, DEFAULT_TAVILY_MCP_URL),
            timeout=_positive_int(TIMEOUT_ENV, DEFAULT_TIMEOUT),
            preview_chars=_positive_int(PREVIEW_CHARS_ENV, DEFAULT_PREVIEW_CHARS),
        )

    def tavily_server_url(self) -> str:
        """Tavily's remote MCP endpoint with the API key as query parameter."""
        if not self.tavily_api_key:
            raise ProbeConfigurationError(
                f"{TAVILY_API_KEY_ENV} is not set; the Tavily MCP server needs it."
            )
        sep = "&" if "?" in self.tavily_mcp_url else "?"
        return f"{self.tavily_mcp_url}{sep}{urlencode({'tavilyApiKey': self.tavily_api_key})}"
