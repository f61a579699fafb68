"""Allowlist entries that suppress known false positives.

Entries are loaded once per scan from a YAML or JSON file::

    - ruleId: aws-access-key
      pathGlob: "fixtures/**"
      reason: Synthetic keys used by the parser tests
    - pattern: "sk_test_[0-9a-zA-Z]{24}"
      expires: 2026-12-31
      reason: Shared sandbox key, rotation tracked in SEC-142
    - pathGlob: docs/setup.md
      line: 42
      reason: Documented sample token

Every configured dimension of an entry must match for it to suppress a
finding. ``pattern`` must match the whole secret (not a substring) and
``literal`` must equal it. ``line`` pins the entry to one 1-based line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Sequence

import regex

from .errors import ConfigurationError
from .utils.fileio import read_structured_file
from .walker import path_matches

logger = logging.getLogger(__name__)

_KEY_ALIASES = {
    "rule_id": "ruleId",
    "rule": "ruleId",
    "path_glob": "pathGlob",
    "path": "pathGlob",
}
_KNOWN_KEYS = {"ruleId", "pathGlob", "pattern", "literal", "line", "reason", "expires"}


@dataclass(frozen=True)
class AllowlistEntry:
    reason: str
    rule_id: Optional[str] = None
    path_glob: Optional[str] = None
    pattern: Optional[str] = None
    literal: Optional[str] = None
    expires: Optional[date] = None
    line: Optional[int] = None
    _regex: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.reason or not self.reason.strip():
            raise ConfigurationError("allowlist entry requires a non-empty 'reason'")
        if not any((self.rule_id, self.path_glob, self.pattern, self.literal)) and self.line is None:
            raise ConfigurationError(
                "allowlist entry must restrict at least one of ruleId, pathGlob, pattern, literal or line"
            )
        compiled = None
        if self.pattern:
            try:
                compiled = regex.compile(self.pattern)
            except regex.error as exc:
                raise ConfigurationError(f"allowlist pattern {self.pattern!r} does not compile: {exc}") from exc
        object.__setattr__(self, "_regex", compiled)

    def matches(self, rule_id: str, file_path: str, matched_text: str, line_number: Optional[int] = None) -> bool:
        if self.rule_id is not None and self.rule_id != rule_id:
            return False
        if self.path_glob is not None and not path_matches(file_path, self.path_glob):
            return False
        if self.line is not None and self.line != line_number:
            return False
        if self.literal is not None and self.literal != matched_text:
            return False
        if self._regex is not None and self._regex.fullmatch(matched_text) is None:
            return False
        return True

    def is_expired(self, today: date) -> bool:
        return self.expires is not None and self.expires < today


def is_suppressed(
    entries: Sequence[AllowlistEntry],
    rule_id: str,
    file_path: str,
    matched_text: str,
    line_number: Optional[int] = None,
) -> bool:
    return any(entry.matches(rule_id, file_path, matched_text, line_number) for entry in entries)


def load_allowlist(path: str | Path, *, today: Optional[date] = None) -> List[AllowlistEntry]:
    """Parse an allowlist file.

    Malformed files raise ``ConfigurationError``. Expired entries are
    dropped with a warning so that they stop suppressing findings.
    """

    allow_path = Path(path)
    raw = read_structured_file(allow_path, what="allowlist")
    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = raw.get("entries", raw.get("allowlist"))
    if not isinstance(raw, list):
        raise ConfigurationError(f"allowlist {allow_path} must contain a list of entries")

    current = today or datetime.now(timezone.utc).date()
    entries: List[AllowlistEntry] = []
    for index, item in enumerate(raw):
        entry = _parse_entry(item, index)
        if entry.is_expired(current):
            logger.warning(
                "Allowlist entry #%d (%s) expired on %s and no longer suppresses findings",
                index,
                entry.reason,
                entry.expires,
            )
            continue
        entries.append(entry)
    logger.info("Loaded %d allowlist entr%s from %s", len(entries), "y" if len(entries) == 1 else "ies", allow_path)
    return entries


def _parse_entry(item: Any, index: int) -> AllowlistEntry:
    if not isinstance(item, dict):
        raise ConfigurationError(f"allowlist entry #{index} must be a mapping")
    data = {_KEY_ALIASES.get(str(key), str(key)): value for key, value in item.items()}
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ConfigurationError(f"allowlist entry #{index} has unknown keys: {', '.join(unknown)}")
    try:
        return AllowlistEntry(
            reason=str(data.get("reason") or ""),
            rule_id=_optional_str(data.get("ruleId")),
            path_glob=_optional_str(data.get("pathGlob")),
            pattern=_optional_str(data.get("pattern")),
            literal=_optional_str(data.get("literal")),
            expires=_parse_date(data.get("expires"), index),
            line=_parse_line(data.get("line"), index),
        )
    except ConfigurationError as exc:
        raise ConfigurationError(f"allowlist entry #{index}: {exc}") from exc


def _parse_date(value: Any, index: int) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ConfigurationError(f"allowlist entry #{index}: invalid expires {value!r}, expected YYYY-MM-DD") from exc


def _parse_line(value: Any, index: int) -> Optional[int]:
    if value is None or value == "":
        return None
    message = f"allowlist entry #{index}: invalid line {value!r}, expected a positive integer"
    if isinstance(value, bool):
        raise ConfigurationError(message)
    try:
        line = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(message) from exc
    if line < 1:
        raise ConfigurationError(message)
    return line


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None
