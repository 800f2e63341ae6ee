"""Typed provider failures for scenario outcomes.

A reproduction states which failure it hit by the error type it records:

    from structured_probe.errors import ProviderSchemaError, wrap_error

    try:
        run = await arun_with_tools(model, messages, tools, ...)
    except Exception as exc:
        err = wrap_error(exc)
        if isinstance(err, ProviderSchemaError):
            # the provider rejected a tool or response schema (HTTP 400)
            ...

Only the distinctions a scenario report makes are modelled; anything else
wraps as a plain ``ProbeError``.
"""

from __future__ import annotations

from typing import Any


class ProbeError(Exception):
    """Base for all structured_probe errors."""

    def __init__(self, message: str, original: Exception | None = None) -> None:
        super().__init__(message)
        self.original = original


class ProbeConfigurationError(ProbeError):
    """Missing API key, URL or other setting a scenario needs."""


class ProviderSchemaError(ProbeError):
    """Provider rejected a tool or response schema (400 invalid schema)."""


class ProviderAuthError(ProbeError):
    """Missing or rejected provider credentials (401/403)."""


class ProviderModelNotFoundError(ProbeError):
    """The requested model string does not exist for the provider (404)."""


class ProviderRateLimitError(ProbeError):
    """Rate limit or quota exhaustion (429)."""


class ProviderTransientError(ProbeError):
    """Server error (5xx), timeout or dropped connection."""


# Phrases providers use when refusing a JSON schema in tools or response_format.
_SCHEMA_PATTERNS = (
    "invalid schema",
    "additionalproperties",
    "response_schema",
    "json_schema",
    "strict",
)

# litellm exception class names, checked in order. A bad request only
# counts as a schema rejection when its message mentions a schema.
_TYPE_RULES: tuple[tuple[tuple[str, ...], type[ProbeError]], ...] = (
    (("AuthenticationError", "PermissionDeniedError"), ProviderAuthError),
    (("NotFoundError",), ProviderModelNotFoundError),
    (("BadRequestError", "UnprocessableEntityError"), ProviderSchemaError),
    (("RateLimitError",), ProviderRateLimitError),
    (
        ("InternalServerError", "ServiceUnavailableError", "APIConnectionError", "Timeout"),
        ProviderTransientError,
    ),
)

# Message fragments for exceptions litellm did not type, checked in order.
_MESSAGE_RULES: tuple[tuple[tuple[str, ...], type[ProbeError]], ...] = (
    (("401", "403", "authentication", "unauthorized", "forbidden"), ProviderAuthError),
    (("404", "not found", "does not exist"), ProviderModelNotFoundError),
    (("429", "rate limit", "quota"), ProviderRateLimitError),
    (("timeout", "timed out", "connection", "500", "502", "503"), ProviderTransientError),
)


def _mentions_schema(error_str: str) -> bool:
    return any(p in error_str for p in _SCHEMA_PATTERNS)


def _is_instance_of(error: Exception, module: Any, names: tuple[str, ...]) -> bool:
    for name in names:
        candidate = getattr(module, name, None)
        if isinstance(candidate, type) and isinstance(error, candidate):
            return True
    return False


def classify_error(error: Exception) -> type[ProbeError]:
    """Map any exception to a ProbeError subtype.

    litellm exception types decide first; message fragments are the
    fallback for exceptions raised outside litellm.
    """
    import litellm as _lt

    error_str = str(error).lower()

    for names, cls in _TYPE_RULES:
        if not _is_instance_of(error, _lt, names):
            continue
        if cls is ProviderSchemaError and not _mentions_schema(error_str):
            continue
        return cls

    if "400" in error_str and _mentions_schema(error_str):
        return ProviderSchemaError
    for fragments, cls in _MESSAGE_RULES:
        if any(f in error_str for f in fragments):
            return cls
    return ProbeError


def wrap_error(error: Exception) -> ProbeError:
    """Wrap an exception in the matching ProbeError subclass.

    A ProbeError is returned unchanged.
    """
    if isinstance(error, ProbeError):
        return error
    cls = classify_error(error)
    return cls(str(error), original=error)
