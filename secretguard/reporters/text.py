"""Human-readable console report."""

from __future__ import annotations

from typing import Dict, List

from ..result import Finding, ScanResult
from ..severity import SEVERITY_ORDER, Severity

RULE = "=" * 60


def format_summary_table(result: ScanResult) -> str:
    """Create the severity/count table shown at the top of the report."""

    lines: List[str] = []
    lines.append("Scan Summary")
    lines.append("=" * 40)
    header = f"{'Severity':<10} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for severity, count in result.summary.as_rows():
        lines.append(f"{severity:<10} | {count:>5}")
    lines.append("-" * len(header))
    status = "PASS" if result.passed else "FAIL"
    lines.append(f"Status    : {status}")
    lines.append(f"Findings  : {result.summary.total} in {result.files_with_findings} file(s)")
    lines.append(f"Suppressed: {result.suppressed_count}")
    lines.append(f"Filtered  : {result.filtered_count}")
    lines.append(f"Files     : {result.files_scanned}/{result.files_discovered} scanned")
    by_category = result.by_category()
    if by_category:
        lines.append("")
        lines.append(f"{'Category':<20} | {'Count':>5}")
        for category, count in by_category.items():
            lines.append(f"{category:<20} | {count:>5}")
    return "\n".join(lines)


def render_text(result: ScanResult) -> str:
    lines: List[str] = []
    lines.append(RULE)
    lines.append("Secret Scan Report")
    lines.append(RULE)
    lines.append(f"Root       : {result.root_dir}")
    lines.append(f"Environment: {result.environment}")
    lines.append(f"Timestamp  : {result.timestamp}")
    lines.append("")
    lines.append(format_summary_table(result))

    grouped = _group_by_severity(result.sorted_findings())
    for severity in SEVERITY_ORDER:
        findings = grouped.get(severity)
        if not findings:
            continue
        lines.append("")
        lines.append(f"{severity.value.upper()} ({len(findings)})")
        lines.append("-" * 40)
        for finding in findings:
            lines.extend(_format_finding(finding))

    if result.has_diagnostics:
        lines.append("")
        lines.extend(_format_diagnostics(result))

    lines.append("")
    lines.append(RULE)
    if result.should_block_deployment:
        lines.append("DEPLOYMENT BLOCKED: resolve the findings above before deploying.")
    else:
        lines.append("DEPLOYMENT ALLOWED")
    lines.append(RULE)
    return "\n".join(lines)


def _group_by_severity(findings: List[Finding]) -> Dict[Severity, List[Finding]]:
    grouped: Dict[Severity, List[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.severity, []).append(finding)
    return grouped


def _format_finding(finding: Finding) -> List[str]:
    location = f"{finding.file_path}:{finding.line_number}:{finding.column_start}"
    if finding.end_line and finding.end_line != finding.line_number:
        location += f"-{finding.end_line}"
    lines = [
        f"[{finding.severity.value}] {finding.rule_name} ({finding.rule_id}) -> {location}",
        f"  Secret     : {finding.redacted_snippet}",
        f"  Confidence : {finding.confidence.value}",
    ]
    if finding.reason_codes:
        lines.append(f"  Reasons    : {', '.join(finding.reason_codes)}")
    if finding.remediation:
        lines.append(f"  Remediation: {finding.remediation}")
    return lines


def _format_diagnostics(result: ScanResult) -> List[str]:
    lines = ["Scan Diagnostics", "-" * 40]
    if result.partial:
        lines.append(
            f"PARTIAL SCAN: deadline reached after {result.files_scanned} of "
            f"{result.files_discovered} discovered files"
        )
    for skipped in sorted(result.skipped_files, key=lambda item: item.path):
        detail = f" ({skipped.detail})" if skipped.detail else ""
        lines.append(f"  skipped file {skipped.path}: {skipped.reason}{detail}")
    for skipped in sorted(result.skipped_rules, key=lambda item: (item.path, item.rule_id)):
        lines.append(f"  timed out rule {skipped.rule_id} on {skipped.path}")
    return lines
