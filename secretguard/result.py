"""Core result data structures for the scanner."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .severity import SEVERITY_ORDER, Confidence, Severity


@dataclass(frozen=True)
class Finding:
    """A classified, redacted detection that survived the allowlist."""

    rule_id: str
    rule_name: str
    category: str
    severity: Severity
    confidence: Confidence
    file_path: str
    line_number: int
    column_start: int
    column_end: int
    redacted_snippet: str
    reason_codes: Tuple[str, ...] = ()
    end_line: Optional[int] = None
    fingerprint: str = ""
    description: str = ""
    remediation: str = ""
    base_severity: Optional[Severity] = None

    @property
    def sort_key(self) -> Tuple[str, int, str]:
        return (self.file_path, self.line_number, self.rule_id)

    def to_dict(self) -> Dict[str, object]:
        return {
            "ruleId": self.rule_id,
            "ruleName": self.rule_name,
            "category": self.category,
            "severity": self.severity.value,
            "confidence": self.confidence.value,
            "filePath": self.file_path,
            "lineNumber": self.line_number,
            "columnStart": self.column_start,
            "columnEnd": self.column_end,
            "endLine": self.end_line,
            "redactedSnippet": self.redacted_snippet,
            "reasonCodes": list(self.reason_codes),
            "fingerprint": self.fingerprint,
            "description": self.description,
            "remediation": self.remediation,
            "baseSeverity": (self.base_severity or self.severity).value,
        }


@dataclass(frozen=True)
class SkippedFile:
    """A file the scan could not read."""

    path: str
    reason: str
    detail: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class SkippedRule:
    """A rule abandoned on one file because it exceeded its time budget."""

    path: str
    rule_id: str
    detail: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "ruleId": self.rule_id, "detail": self.detail}


@dataclass
class Summary:
    """Aggregate finding counts by severity."""

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0

    @classmethod
    def from_findings(cls, findings: Iterable[Finding]) -> "Summary":
        summary = cls()
        for finding in findings:
            summary.increment(finding.severity)
        return summary

    def increment(self, severity: Severity) -> None:
        attr = severity.value
        setattr(self, attr, getattr(self, attr) + 1)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    def as_rows(self) -> List[Tuple[str, int]]:
        """Return severity/count pairs ordered for reporting."""

        return [(severity.value, getattr(self, severity.value)) for severity in SEVERITY_ORDER]

    @property
    def total(self) -> int:
        return sum(getattr(self, severity.value) for severity in SEVERITY_ORDER)


@dataclass(frozen=True)
class ScanResult:
    """Final output of a scan, handed unchanged to the reporters."""

    root_dir: str
    timestamp: str
    findings: Tuple[Finding, ...] = ()
    summary: Summary = field(default_factory=Summary)
    suppressed_count: int = 0
    filtered_count: int = 0
    should_block_deployment: bool = False
    partial: bool = False
    files_discovered: int = 0
    files_scanned: int = 0
    skipped_files: Tuple[SkippedFile, ...] = ()
    skipped_rules: Tuple[SkippedRule, ...] = ()
    environment: str = "development"
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        return not self.should_block_deployment

    @property
    def has_diagnostics(self) -> bool:
        return bool(self.partial or self.skipped_files or self.skipped_rules)

    @property
    def files_with_findings(self) -> int:
        return len({finding.file_path for finding in self.findings})

    def by_category(self) -> Dict[str, int]:
        return _count_by(finding.category for finding in self.findings)

    def by_rule(self) -> Dict[str, int]:
        return _count_by(finding.rule_id for finding in self.findings)

    def sorted_findings(self) -> List[Finding]:
        """Findings in report order: (file path, line, rule id)."""

        return sorted(self.findings, key=lambda finding: finding.sort_key)

    def exit_code(self) -> int:
        return 1 if self.should_block_deployment else 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "rootDir": self.root_dir,
            "timestamp": self.timestamp,
            "environment": self.environment,
            "shouldBlockDeployment": self.should_block_deployment,
            "partial": self.partial,
            "filesDiscovered": self.files_discovered,
            "filesScanned": self.files_scanned,
            "durationMs": self.duration_ms,
            "summary": self.summary.to_dict(),
            "filesWithFindings": self.files_with_findings,
            "byCategory": self.by_category(),
            "byRule": self.by_rule(),
            "suppressedCount": self.suppressed_count,
            "filteredCount": self.filtered_count,
            "findings": [finding.to_dict() for finding in self.sorted_findings()],
            "diagnostics": {
                "skippedFiles": [item.to_dict() for item in sorted(self.skipped_files, key=lambda s: s.path)],
                "skippedRules": [
                    item.to_dict() for item in sorted(self.skipped_rules, key=lambda s: (s.path, s.rule_id))
                ],
            },
        }


def _count_by(keys: Iterable[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for key in keys:
        counts[key] = counts.get(key, 0) + 1
    return dict(sorted(counts.items()))
