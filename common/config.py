"""
config.py
---------
Configuration for the repository client tools.

Settings come from three places, later ones winning:
    1. built-in defaults
    2. a YAML file (JSON is accepted too), ~/.repoclient/config.yaml by default
    3. REPOCLIENT_* environment variables

The result is a Box, so both ``config.timeout`` and ``config["timeout"]`` work.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from box import Box

DEFAULT_CONFIG_PATH = Path("~/.repoclient/config.yaml")

DEFAULTS: dict[str, Any] = {
    "repository_url": None,
    "timeout": 30.0,
    "log_level": "INFO",
    "logfile": None,
}

# env var -> (setting, converter)
ENV_OVERRIDES = {
    "REPOCLIENT_URL": ("repository_url", str),
    "REPOCLIENT_TIMEOUT": ("timeout", float),
    "REPOCLIENT_LOG_LEVEL": ("log_level", str.upper),
    "REPOCLIENT_LOGFILE": ("logfile", str),
}


def load_config(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> Box:
    """Build the effective configuration.

    An explicit ``path`` must exist; the default path is optional.
    Raises ValueError on unreadable content or bad values.
    """
    config = Box(DEFAULTS)
    if path is not None:
        config.update(_load_file(Path(path)))
    else:
        default = DEFAULT_CONFIG_PATH.expanduser()
        if default.is_file():
            config.update(_load_file(default))

    env = os.environ if environ is None else environ
    for var, (key, convert) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            config[key] = convert(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from exc

    _validate(config)
    return config


def _load_file(path: Path) -> dict[str, Any]:
    payload = load_text_payload(path.read_text())
    if not isinstance(payload, Mapping):
        raise ValueError(f"Configuration in {path} must be a mapping")
    unknown = set(payload) - set(DEFAULTS)
    if unknown:
        raise ValueError(f"Unknown configuration keys in {path}: {', '.join(sorted(unknown))}")
    return dict(payload)


def load_text_payload(raw: str | bytes) -> Any:
    """Interpret raw text as YAML first, falling back to JSON."""
    text = raw.decode() if isinstance(raw, bytes) else raw
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError("Content is neither valid YAML nor JSON") from exc


def _validate(config: Box) -> None:
    if config.repository_url is not None and not isinstance(config.repository_url, str):
        raise ValueError("repository_url must be a string")
    if isinstance(config.timeout, bool) or not isinstance(config.timeout, (int, float)) or config.timeout <= 0:
        raise ValueError("timeout must be a positive number")
    config.timeout = float(config.timeout)
    if not isinstance(config.log_level, str):
        raise ValueError("log_level must be a string")
    config.log_level = config.log_level.upper()
