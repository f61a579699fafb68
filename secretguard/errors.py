"""Exception taxonomy shared by the scanner components."""

from __future__ import annotations


class SecretGuardError(Exception):
    """Base class for all scanner errors."""


class ConfigurationError(SecretGuardError, ValueError):
    """Invalid rules, allowlist, config file or root path. Aborts the scan."""


class RuleDefinitionError(ConfigurationError):
    """A rule definition is malformed or collides with an existing rule."""


class FileAccessError(SecretGuardError):
    """A single file could not be read. The file is skipped and recorded."""

    def __init__(self, path: str, reason: str, detail: str = "") -> None:
        super().__init__(f"{path}: {reason}" + (f" ({detail})" if detail else ""))
        self.path = path
        self.reason = reason
        self.detail = detail


class PatternTimeoutError(SecretGuardError):
    """A rule exceeded its time budget on one file."""

    def __init__(self, rule_id: str, path: str, budget: float) -> None:
        super().__init__(f"rule {rule_id} exceeded {budget:.2f}s on {path}")
        self.rule_id = rule_id
        self.path = path
        self.budget = budget


class ReportWriteError(SecretGuardError):
    """The report could not be written to any sink."""
