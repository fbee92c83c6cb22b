"""Configuration resolution with XDG paths and precedence.

This module turns every configuration source into one validated
:class:`~cacheproxy.models.ProxyConfig`:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.cacheproxy/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **User config** -- an optional ``config.json`` in the config directory.
* **Project config** -- an optional ``./cacheproxy.json`` in the working
  directory.
* **Environment** -- ``CACHEPROXY_*`` variables (see :data:`ENV_VARS`).
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project config, user config and model defaults.
* **Durations** -- :func:`parse_duration` accepts Go-style strings such
  as ``"5m"``, ``"1h30m"`` or ``"250ms"`` as well as bare seconds.

Config files use the same keys as the CLI flags: ``target``, ``ttl``,
``cache_size``, ``timeout``, ``host``, ``port``, ``eviction`` and
``strip_hop_by_hop``.
"""

from __future__ import annotations

import json
import os
import platform
import re
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from cacheproxy.exceptions import ConfigError
from cacheproxy.models import ProxyConfig

_APP_NAME = "cacheproxy"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "cacheproxy.json"

ENV_VARS: dict[str, str] = {
    "target": "CACHEPROXY_TARGET",
    "ttl": "CACHEPROXY_TTL",
    "cache_size": "CACHEPROXY_CACHE_SIZE",
    "timeout": "CACHEPROXY_TIMEOUT",
    "host": "CACHEPROXY_HOST",
    "port": "CACHEPROXY_PORT",
    "eviction": "CACHEPROXY_EVICTION",
}
"""Config key to environment variable name."""

_KNOWN_KEYS = frozenset(ENV_VARS) | {"strip_hop_by_hop"}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform uses the XDG Base Directory layout (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory. It is not created.

    On Linux/BSD: ``$XDG_CONFIG_HOME/cacheproxy/`` (default ``~/.config/cacheproxy/``).
    On macOS/Windows: ``~/.cacheproxy/``.
    """
    if _is_xdg_platform():
        return _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    return _fallback_base_dir()


def get_data_dir() -> Path:
    """Return the data directory, creating it if necessary. Crash logs go in ``logs/``.

    On Linux/BSD: ``$XDG_DATA_HOME/cacheproxy/`` (default ``~/.local/share/cacheproxy/``).
    On macOS/Windows: ``~/.cacheproxy/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Durations ---

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str | int | float) -> float:
    """Convert a duration to seconds.

    Accepts numbers (already seconds), numeric strings (``"30"``), and
    Go-style duration strings made of one or more ``<number><unit>`` parts
    with units ``ns``, ``us``, ``ms``, ``s``, ``m`` and ``h``
    (``"5m"``, ``"1h30m"``, ``"1.5s"``).

    Raises:
        ConfigError: If *value* is not a positive duration.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            seconds = _parse_duration_string(text)
    if seconds <= 0:
        raise ConfigError(f"Duration must be positive: {value!r}")
    return seconds


def _parse_duration_string(text: str) -> float:
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ConfigError(
            f"Invalid duration: {text!r} (expected e.g. '30s', '5m', '1h30m')"
        )
    return total


# --- Config files ---


def _load_json_file(path: Path, label: str) -> Optional[dict[str, Any]]:
    """Parse *path* as a JSON object, or return ``None`` when it does not exist."""
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {label} at {path}: expected a JSON object")
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"Unknown keys in {label} at {path}: {', '.join(unknown)}")
    return data


def load_global_config() -> Optional[dict[str, Any]]:
    """Load the user-wide config file from the config directory.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a valid JSON object of
            known keys.
    """
    return _load_json_file(get_config_dir() / _CONFIG_FILENAME, "global config")


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./cacheproxy.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a valid JSON object of
            known keys.
    """
    return _load_json_file(Path.cwd() / _PROJECT_CONFIG_FILENAME, "project config")


def _load_env() -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, var in ENV_VARS.items():
        value = os.environ.get(var)
        if value:
            values[key] = value
    return values


# --- Precedence resolution ---


def resolve_config(
    cli_target: Optional[str] = None,
    cli_ttl: Optional[str] = None,
    cli_cache_size: Optional[int] = None,
    cli_timeout: Optional[str] = None,
    cli_host: Optional[str] = None,
    cli_port: Optional[int] = None,
    cli_eviction: Optional[str] = None,
) -> ProxyConfig:
    """Resolve config with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_*`` arguments that are not ``None``)
        2. Environment variables (``CACHEPROXY_TARGET``, ``CACHEPROXY_TTL``, ...)
        3. Project config (``./cacheproxy.json``)
        4. User config (``~/.config/cacheproxy/config.json``)
        5. Defaults from :class:`~cacheproxy.models.ProxyConfig`

    Returns:
        The validated effective configuration.

    Raises:
        ConfigError: If no target is configured, a duration is malformed,
            a config file is invalid, or the merged values fail validation.
    """
    merged: dict[str, Any] = {}

    # 4. User config
    merged.update(load_global_config() or {})
    # 3. Project-local config
    merged.update(load_project_config() or {})
    # 2. Environment variables
    merged.update(_load_env())
    # 1. CLI flags (highest precedence)
    cli_values = {
        "target": cli_target,
        "ttl": cli_ttl,
        "cache_size": cli_cache_size,
        "timeout": cli_timeout,
        "host": cli_host,
        "port": cli_port,
        "eviction": cli_eviction,
    }
    merged.update({k: v for k, v in cli_values.items() if v is not None})

    if not merged.get("target"):
        raise ConfigError(
            "Target host is required (use --target or set CACHEPROXY_TARGET)"
        )

    fields: dict[str, Any] = {"target": merged["target"]}
    if "ttl" in merged:
        fields["ttl_seconds"] = parse_duration(merged["ttl"])
    if "timeout" in merged:
        fields["timeout"] = parse_duration(merged["timeout"])
    if "cache_size" in merged:
        fields["max_entries"] = merged["cache_size"]
    for key in ("host", "port", "eviction", "strip_hop_by_hop"):
        if key in merged:
            fields[key] = merged[key]

    try:
        return ProxyConfig.model_validate(fields)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
