"""Deployment gating decisions."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Tuple

from .result import Finding, ScanResult
from .severity import Severity


class BlockMode(str, Enum):
    """How findings translate into a blocking decision."""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"

    @classmethod
    def parse(cls, value: object) -> "BlockMode":
        if isinstance(value, BlockMode):
            return value
        return cls(str(value).strip().lower())


def apply_visibility_filter(findings: Iterable[Finding], min_severity: Severity) -> Tuple[List[Finding], int]:
    """Drop findings below ``min_severity`` and return how many were dropped."""

    visible: List[Finding] = []
    filtered = 0
    for finding in findings:
        if finding.severity.at_least(min_severity):
            visible.append(finding)
        else:
            filtered += 1
    return visible, filtered


def evaluate(
    scan_result: ScanResult,
    block_mode: BlockMode,
    min_severity: Severity = Severity.LOW,
    block_on_high: bool = True,
    block_on_medium: bool = False,
) -> bool:
    """Return True when the scan should fail the deployment.

    ``never`` never blocks and ``always`` blocks on any visible finding. In
    ``auto`` mode criticals always block, highs block unless
    ``block_on_high`` is off and mediums block only with
    ``block_on_medium``.
    """

    if block_mode is BlockMode.NEVER:
        return False
    visible = [finding for finding in scan_result.findings if finding.severity.at_least(min_severity)]
    if block_mode is BlockMode.ALWAYS:
        return bool(visible)
    for finding in visible:
        if finding.severity is Severity.CRITICAL:
            return True
        if finding.severity is Severity.HIGH and block_on_high:
            return True
        if finding.severity is Severity.MEDIUM and block_on_medium:
            return True
    return False
