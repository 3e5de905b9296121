"""Process-wide YAML configuration, looked up by top-level key."""

from __future__ import annotations

import copy
import os
import threading
from pathlib import Path
from typing import Any

import yaml

DEFAULT_PATH = "config.yaml"
ENV_VAR = "CONFIG_FILE"


class ConfigError(Exception):
    """The configuration file could not be parsed."""


_lock = threading.Lock()
_mapping: dict[str, Any] | None = None


def _default_path() -> str:
    return os.environ.get(ENV_VAR) or DEFAULT_PATH


def _load(path: str | os.PathLike[str]) -> dict[str, Any]:
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"unable to parse config file {path}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must hold a mapping at the top level")
    return data


def init(config_path: str | os.PathLike[str] | None = None) -> None:
    """Load (or reload) the configuration.

    The path is taken from ``config_path``, then the ``CONFIG_FILE``
    environment variable, then ``config.yaml``.
    """
    global _mapping
    mapping = _load(config_path or _default_path())
    with _lock:
        _mapping = mapping


def parse(key: str) -> Any:
    """Return a copy of the value stored under ``key``, or None if absent."""
    global _mapping
    with _lock:
        if _mapping is None:
            _mapping = _load(_default_path())
        value = _mapping.get(key)
    return copy.deepcopy(value)