"""Scan configuration and its YAML/JSON file form.

A config file is a mapping whose keys mirror the long CLI flags::

    environment: production
    block_mode: auto
    min_severity: low
    exclude_paths: ["fixtures/**", "**/*.snap"]
    workers: 8
    deadline_seconds: 300
    allowlist_file: .secretguard-allowlist.yaml

CLI flags override values from the file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigurationError
from .matcher import DEFAULT_PATTERN_TIMEOUT
from .policy import BlockMode
from .severity import Severity
from .utils.fileio import read_structured_file
from .walker import (
    DEFAULT_EXCLUDE_PATHS,
    DEFAULT_INCLUDE_EXTENSIONS,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    DEFAULT_SKIP_DIRS,
)

ENVIRONMENT_ALIASES = {
    "prod": "production",
    "production": "production",
    "dev": "development",
    "development": "development",
    "stage": "staging",
    "staging": "staging",
    "test": "test",
}


def default_workers() -> int:
    return min(32, os.cpu_count() or 1)


def normalize_environment(value: object) -> str:
    name = str(value or "").strip().lower()
    if not name:
        raise ConfigurationError("environment must be a non-empty string")
    return ENVIRONMENT_ALIASES.get(name, name)


@dataclass(frozen=True)
class ScanConfig:
    include_extensions: Tuple[str, ...] = DEFAULT_INCLUDE_EXTENSIONS
    exclude_paths: Tuple[str, ...] = DEFAULT_EXCLUDE_PATHS
    skip_dirs: Tuple[str, ...] = DEFAULT_SKIP_DIRS
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    workers: int = 0
    deadline_seconds: Optional[float] = None
    pattern_timeout_seconds: float = DEFAULT_PATTERN_TIMEOUT
    environment: str = "development"
    block_mode: BlockMode = BlockMode.AUTO
    min_severity: Severity = Severity.LOW
    block_on_high: bool = True
    block_on_medium: bool = False
    rules_file: Optional[str] = None
    allowlist_file: Optional[str] = None

    def __post_init__(self) -> None:
        if self.workers <= 0:
            object.__setattr__(self, "workers", default_workers())
        if self.max_file_size_bytes <= 0:
            raise ConfigurationError("max_file_size_bytes must be positive")
        if self.deadline_seconds is not None and self.deadline_seconds < 0:
            raise ConfigurationError("deadline_seconds must not be negative")
        if self.pattern_timeout_seconds <= 0:
            raise ConfigurationError("pattern_timeout_seconds must be positive")
        object.__setattr__(self, "environment", normalize_environment(self.environment))


_TUPLE_FIELDS = {"include_extensions", "exclude_paths", "skip_dirs"}
_INT_FIELDS = {"max_file_size_bytes", "workers"}
_FLOAT_FIELDS = {"deadline_seconds", "pattern_timeout_seconds"}
_BOOL_FIELDS = {"block_on_high", "block_on_medium"}


def load_config(path: str | Path) -> ScanConfig:
    """Read a config file into a ``ScanConfig``; unknown keys are rejected."""

    config_path = Path(path)
    raw = read_structured_file(config_path, what="config file")
    if raw is None:
        return ScanConfig()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"config file {config_path} must contain a mapping")
    return config_from_mapping(raw, source=str(config_path))


def config_from_mapping(raw: Dict[str, Any], source: str = "config") -> ScanConfig:
    known = {item.name for item in fields(ScanConfig)}
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        name = str(key).replace("-", "_")
        if name not in known:
            raise ConfigurationError(f"{source}: unknown setting {key!r}")
        values[name] = _coerce(name, value, source)
    try:
        return ScanConfig(**values)
    except ConfigurationError as exc:
        raise ConfigurationError(f"{source}: {exc}") from exc


def _coerce(name: str, value: Any, source: str) -> Any:
    try:
        if value is None:
            return None if name in {"deadline_seconds", "rules_file", "allowlist_file"} else _reject(name)
        if name in _TUPLE_FIELDS:
            if isinstance(value, str):
                return (value,)
            return tuple(str(item) for item in value)
        if name in _INT_FIELDS:
            return int(value)
        if name in _FLOAT_FIELDS:
            return float(value)
        if name in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValueError(f"expected true/false, got {value!r}")
            return value
        if name == "block_mode":
            return BlockMode.parse(value)
        if name == "min_severity":
            return Severity.parse(value)
        return str(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{source}: invalid value for {name}: {exc}") from exc


def _reject(name: str) -> Any:
    raise ValueError(f"{name} must not be null")
