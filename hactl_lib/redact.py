"""Redaction helpers for logs and diagnostics."""

from __future__ import annotations

from typing import Any, Mapping

REDACTED = "***"

_SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "token",
        "hass_token",
        "refresh_token",
        "password",
        "api_password",
    }
)


def redact_for_diagnostics(data: Any) -> Any:
    """Return a JSON-safe copy of data with credential values replaced."""
    if isinstance(data, Mapping):
        out: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(key, str) and key.lower() in _SENSITIVE_KEYS and value not in (None, ""):
                out[str(key)] = REDACTED
            else:
                out[str(key)] = redact_for_diagnostics(value)
        return out
    if isinstance(data, (list, tuple)):
        return [redact_for_diagnostics(item) for item in data]
    return data


__all__ = ["REDACTED", "redact_for_diagnostics"]
