"""Basic file IO helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..errors import ConfigurationError


def read_structured_file(path: Path, *, what: str = "file") -> Any:
    """Return the parsed YAML/JSON document at ``path``.

    JSON is a subset of YAML, so a single ``safe_load`` covers both formats.
    Missing files and syntax errors surface as ``ConfigurationError``.
    """

    if not path.exists():
        raise ConfigurationError(f"{what} not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid {what} syntax in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"cannot read {what} {path}: {exc}") from exc

