"""Configuration for hactl_lib: a voluptuous schema over the config.yaml keys."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import voluptuous as vol

from .const import DEFAULT_HASS_URL
from .errors import HactlConfigError
from .filter import CachePaths, default_cache_dir
from .redact import redact_for_diagnostics
from .session import SessionConfig
from .types import ClientConfig, FilterMode

CONF_HASS_URL = "hass_url"
CONF_HASS_TOKEN = "hass_token"
CONF_FILTER = "filter"
CONF_MODE = "mode"
CONF_CACHE_DIR = "cache_dir"
CONF_CONNECT_TIMEOUT = "connect_timeout"
CONF_REQUEST_TIMEOUT = "request_timeout"
CONF_VERIFY_SSL = "verify_ssl"

ENV_HASS_URL = "HASS_URL"
ENV_HASS_TOKEN = "HASS_TOKEN"

TOKEN_REQUIRED_MESSAGE = (
    "HASS_TOKEN is required. Set it via the HASS_TOKEN environment variable "
    "or hass_token in config.yaml"
)


def _default_if_empty(default: Any) -> Callable[[Any], Any]:
    def _validator(value: Any) -> Any:
        return default if value in (None, "") else value

    return _validator


def _strip_url(value: str) -> str:
    return value.strip().rstrip("/")


_POSITIVE_SECONDS = vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False))

FILTER_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_MODE, default=FilterMode.EXPOSED.value): vol.All(
            _default_if_empty(FilterMode.EXPOSED.value),
            vol.In([mode.value for mode in FilterMode]),
        ),
    },
    extra=vol.ALLOW_EXTRA,
)

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_HASS_URL, default=DEFAULT_HASS_URL): vol.All(
            _default_if_empty(DEFAULT_HASS_URL), str, _strip_url
        ),
        vol.Required(CONF_HASS_TOKEN): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_FILTER, default=dict): vol.Any(None, FILTER_SCHEMA),
        vol.Optional(CONF_CACHE_DIR): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_CONNECT_TIMEOUT, default=10.0): _POSITIVE_SECONDS,
        vol.Optional(CONF_REQUEST_TIMEOUT, default=30.0): _POSITIVE_SECONDS,
        vol.Optional(CONF_VERIFY_SSL, default=True): vol.Boolean(),
    },
    extra=vol.ALLOW_EXTRA,
)


@dataclass(frozen=True, slots=True)
class HactlConfig:
    """
    Validated, immutable configuration for one invocation.

    Build it with config_from_mapping() or config_from_env(); the constructor
    does not validate.
    """

    hass_url: str
    hass_token: str
    filter_mode: FilterMode = FilterMode.EXPOSED
    cache_dir: Path = field(default_factory=default_cache_dir)
    connect_timeout_s: float = 10.0
    request_timeout_s: float = 30.0
    verify_ssl: bool = True

    @property
    def cache_paths(self) -> CachePaths:
        return CachePaths.in_dir(self.cache_dir)

    def session_config(self, *, wire_log: bool = False) -> SessionConfig:
        return SessionConfig(
            url=self.hass_url,
            token=self.hass_token,
            connect_timeout_s=self.connect_timeout_s,
            verify_ssl=self.verify_ssl,
            wire_log=wire_log,
        )

    def client_config(self) -> ClientConfig:
        return ClientConfig(request_timeout_s=self.request_timeout_s)

    def as_diagnostics(self) -> dict[str, Any]:
        return redact_for_diagnostics(
            {
                CONF_HASS_URL: self.hass_url,
                CONF_HASS_TOKEN: self.hass_token,
                CONF_FILTER: {CONF_MODE: self.filter_mode.value},
                CONF_CACHE_DIR: str(self.cache_dir),
                CONF_CONNECT_TIMEOUT: self.connect_timeout_s,
                CONF_REQUEST_TIMEOUT: self.request_timeout_s,
                CONF_VERIFY_SSL: self.verify_ssl,
            }
        )


def config_from_mapping(data: Optional[Mapping[str, Any]]) -> HactlConfig:
    """Validate an already-loaded config mapping (e.g. parsed config.yaml)."""
    try:
        conf = CONFIG_SCHEMA(dict(data or {}))
    except vol.Invalid as err:
        path = [str(part) for part in err.path]
        if path[:1] == [CONF_HASS_TOKEN]:
            raise HactlConfigError(TOKEN_REQUIRED_MESSAGE) from err
        raise HactlConfigError(f"invalid configuration: {err}") from err

    filter_conf = conf.get(CONF_FILTER) or {}
    cache_dir = conf.get(CONF_CACHE_DIR)
    return HactlConfig(
        hass_url=conf[CONF_HASS_URL],
        hass_token=conf[CONF_HASS_TOKEN],
        filter_mode=FilterMode(filter_conf.get(CONF_MODE, FilterMode.EXPOSED.value)),
        cache_dir=Path(cache_dir).expanduser() if cache_dir else default_cache_dir(),
        connect_timeout_s=conf[CONF_CONNECT_TIMEOUT],
        request_timeout_s=conf[CONF_REQUEST_TIMEOUT],
        verify_ssl=conf[CONF_VERIFY_SSL],
    )


def config_from_env(
    data: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> HactlConfig:
    """Overlay HASS_URL / HASS_TOKEN from the environment onto data, then validate."""
    environ = os.environ if environ is None else environ
    merged = dict(data or {})
    url = environ.get(ENV_HASS_URL)
    if url:
        merged[CONF_HASS_URL] = url
    token = environ.get(ENV_HASS_TOKEN)
    if token:
        merged[CONF_HASS_TOKEN] = token
    return config_from_mapping(merged)


__all__ = [
    "CONFIG_SCHEMA",
    "HactlConfig",
    "config_from_env",
    "config_from_mapping",
]
