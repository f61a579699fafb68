"""Rule registry for the scanner.

Rules are plain data: a compiled pattern plus metadata. Every rule shares
the same execution shape (regex hit, then classification), so there is no
per-provider class hierarchy. Multi-line rules additionally carry an
``end_pattern`` and are evaluated by the matcher's key-block state machine.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import regex

from ..errors import RuleDefinitionError
from ..severity import Confidence, Severity
from ..utils.fileio import read_structured_file

logger = logging.getLogger(__name__)

DEFAULT_REMEDIATION = "Move this secret to a secret manager and rotate it."
DEFAULT_MIN_MATCH_LENGTH = 8
DEFAULT_MAX_MATCH_LENGTH = 512
BLOCK_MAX_MATCH_LENGTH = 100_000


class RuleCategory(str, Enum):
    CREDENTIAL_PROVIDER = "credential-provider"
    KEY_MATERIAL = "key-material"
    WEBHOOK = "webhook"
    CONNECTION_STRING = "connection-string"


@dataclass(frozen=True)
class Rule:
    """A single detection rule."""

    id: str
    name: str
    category: RuleCategory
    pattern: str
    base_severity: Severity
    min_match_length: int = DEFAULT_MIN_MATCH_LENGTH
    max_match_length: int = DEFAULT_MAX_MATCH_LENGTH
    description: str = ""
    remediation: str = DEFAULT_REMEDIATION
    confidence: Confidence = Confidence.HIGH
    end_pattern: Optional[str] = None
    test_marker: Optional[str] = None
    example: Optional[str] = None
    file_extensions: Tuple[str, ...] = ()
    _regex: Any = field(init=False, repr=False, compare=False)
    _end_regex: Any = field(init=False, repr=False, compare=False)
    _marker_regex: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise RuleDefinitionError("rule id must be a non-empty string")
        if not isinstance(self.base_severity, Severity):
            raise RuleDefinitionError(f"rule {self.id}: severity must be a Severity")
        if self.min_match_length < 1 or self.max_match_length < self.min_match_length:
            raise RuleDefinitionError(
                f"rule {self.id}: invalid match length bounds "
                f"{self.min_match_length}..{self.max_match_length}"
            )
        object.__setattr__(self, "file_extensions", tuple(ext.lower() for ext in self.file_extensions))
        object.__setattr__(self, "_regex", _compile(self.id, "pattern", self.pattern))
        object.__setattr__(
            self,
            "_end_regex",
            _compile(self.id, "end_pattern", self.end_pattern) if self.end_pattern else None,
        )
        object.__setattr__(
            self,
            "_marker_regex",
            _compile(self.id, "test_marker", self.test_marker) if self.test_marker else None,
        )

    @property
    def is_block(self) -> bool:
        """True for rules that span several lines (BEGIN ... END)."""

        return self._end_regex is not None

    def finditer(self, text: str, timeout: Optional[float] = None) -> Iterator[Any]:
        return self._regex.finditer(text, timeout=timeout)

    def search(self, text: str, timeout: Optional[float] = None) -> Any:
        return self._regex.search(text, timeout=timeout)

    def search_end(self, text: str, timeout: Optional[float] = None) -> Any:
        return self._end_regex.search(text, timeout=timeout)

    def accepts_length(self, length: int) -> bool:
        return self.min_match_length <= length <= self.max_match_length

    def has_test_marker(self, text: str) -> bool:
        return bool(self._marker_regex and self._marker_regex.search(text))

    def applies_to(self, relative_path: str) -> bool:
        """True when the rule is unscoped or the file name or suffix is listed."""

        if not self.file_extensions:
            return True
        name = posixpath.basename(relative_path).lower()
        return name in self.file_extensions or posixpath.splitext(name)[1] in self.file_extensions


def _compile(rule_id: str, field_name: str, source: str) -> Any:
    try:
        return regex.compile(source)
    except (regex.error, TypeError) as exc:
        raise RuleDefinitionError(f"rule {rule_id}: {field_name} does not compile: {exc}") from exc


class RuleRegistry:
    """Ordered, id-unique catalogue of rules."""

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: Dict[str, Rule] = {}
        self.extend(rules)

    def all_rules(self) -> Tuple[Rule, ...]:
        return tuple(self._rules.values())

    def rule_by_id(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def extend(self, rules: Iterable[Rule]) -> None:
        """Add ``rules`` atomically: either all are added or none."""

        pending: Dict[str, Rule] = {}
        for rule in rules:
            if rule.id in self._rules:
                raise RuleDefinitionError(f"rule id {rule.id!r} collides with an existing rule")
            if rule.id in pending:
                raise RuleDefinitionError(f"rule id {rule.id!r} is defined more than once")
            pending[rule.id] = rule
        self._rules.update(pending)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules


def default_registry() -> RuleRegistry:
    """Return a fresh registry holding the built-in rules."""

    from .builtin import BUILTIN_RULES

    return RuleRegistry(BUILTIN_RULES)


# ----------------------------------------------------------------------
# Rule file loading
# ----------------------------------------------------------------------
_KEY_ALIASES = {
    "baseSeverity": "severity",
    "base_severity": "severity",
    "minMatchLength": "min_match_length",
    "maxMatchLength": "max_match_length",
    "endPattern": "end_pattern",
    "testMarker": "test_marker",
    "fileExtensions": "file_extensions",
}
_REQUIRED_KEYS = ("id", "category", "pattern", "severity")


def load_rule_file(path: str | Path, registry: Optional[RuleRegistry] = None) -> RuleRegistry:
    """Extend ``registry`` (default: built-ins) with the rules in a YAML/JSON file.

    The file holds either a list of rule mappings or a mapping with a
    ``rules`` list. Any invalid entry aborts the whole load.
    """

    rules_path = Path(path)
    raw = read_structured_file(rules_path, what="rule file")
    if isinstance(raw, dict):
        raw = raw.get("rules")
    if not isinstance(raw, list) or not raw:
        raise RuleDefinitionError(f"rule file {rules_path} must contain a non-empty list of rules")

    target = registry if registry is not None else default_registry()
    parsed = [_parse_rule(item, index) for index, item in enumerate(raw)]
    target.extend(parsed)
    logger.info("Loaded %d custom rule(s) from %s", len(parsed), rules_path)
    return target


def _parse_rule(item: Any, index: int) -> Rule:
    if not isinstance(item, dict):
        raise RuleDefinitionError(f"rule #{index} must be a mapping")
    data = {_KEY_ALIASES.get(str(key), str(key)): value for key, value in item.items()}

    missing = [key for key in _REQUIRED_KEYS if key not in data]
    if missing:
        raise RuleDefinitionError(f"rule #{index} is missing keys: {', '.join(missing)}")

    rule_id = str(data["id"]).strip()
    try:
        severity = Severity.parse(data["severity"])
    except ValueError as exc:
        raise RuleDefinitionError(f"rule {rule_id}: unknown severity {data['severity']!r}") from exc
    try:
        category = RuleCategory(str(data["category"]).strip().lower())
    except ValueError as exc:
        raise RuleDefinitionError(f"rule {rule_id}: unknown category {data['category']!r}") from exc
    try:
        confidence = Confidence(str(data.get("confidence", "high")).strip().lower())
    except ValueError as exc:
        raise RuleDefinitionError(f"rule {rule_id}: unknown confidence {data['confidence']!r}") from exc

    end_pattern = _optional_str(data.get("end_pattern"))
    default_max = BLOCK_MAX_MATCH_LENGTH if end_pattern else DEFAULT_MAX_MATCH_LENGTH
    try:
        min_length = int(data.get("min_match_length", DEFAULT_MIN_MATCH_LENGTH))
        max_length = int(data.get("max_match_length", default_max))
    except (TypeError, ValueError) as exc:
        raise RuleDefinitionError(f"rule {rule_id}: match lengths must be integers") from exc

    return Rule(
        id=rule_id,
        name=str(data.get("name") or rule_id),
        category=category,
        pattern=str(data["pattern"]),
        base_severity=severity,
        min_match_length=min_length,
        max_match_length=max_length,
        description=str(data.get("description", "")),
        remediation=str(data.get("remediation") or DEFAULT_REMEDIATION),
        confidence=confidence,
        end_pattern=end_pattern,
        test_marker=_optional_str(data.get("test_marker")),
        example=_optional_str(data.get("example")),
        file_extensions=_extensions(data.get("file_extensions"), rule_id),
    )


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _extensions(value: Any, rule_id: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise RuleDefinitionError(f"rule {rule_id}: fileExtensions must be a list")
    return tuple(str(item).strip() for item in value if str(item).strip())


__all__: List[str] = [
    "Rule",
    "RuleCategory",
    "RuleRegistry",
    "default_registry",
    "load_rule_file",
]
