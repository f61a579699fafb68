"""SARIF 2.1.0 output for code-scanning dashboards.

SARIF has three result levels against our five severities, so the mapping
is lossy: critical and high become ``error``, medium becomes ``warning``,
low and info become ``note``. The exact severity is kept in
``properties.severity`` on every result. Rule descriptors use the rule's
base severity, so their default level does not depend on scanned data.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from .. import __version__
from ..result import Finding, ScanResult
from ..severity import Severity

SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
SARIF_VERSION = "2.1.0"
TOOL_NAME = "secretguard"
TOOL_URI = "https://pypi.org/project/secretguard/"

SARIF_LEVELS = {
    Severity.CRITICAL: "error",
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "note",
    Severity.INFO: "note",
}


def sarif_level(severity: Severity) -> str:
    return SARIF_LEVELS[severity]


def build_sarif(result: ScanResult) -> Dict[str, Any]:
    findings = result.sorted_findings()
    rules: List[Dict[str, Any]] = []
    rule_index: Dict[str, int] = {}
    for finding in findings:
        if finding.rule_id in rule_index:
            continue
        rule_index[finding.rule_id] = len(rules)
        rules.append(_rule_descriptor(finding))

    return {
        "$schema": SARIF_SCHEMA,
        "version": SARIF_VERSION,
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": TOOL_NAME,
                        "version": __version__,
                        "informationUri": TOOL_URI,
                        "rules": rules,
                    }
                },
                "invocations": [
                    {
                        "executionSuccessful": not result.partial,
                        "endTimeUtc": result.timestamp,
                        "toolExecutionNotifications": _notifications(result),
                        "properties": {
                            "partial": result.partial,
                            "filesDiscovered": result.files_discovered,
                            "filesScanned": result.files_scanned,
                            "shouldBlockDeployment": result.should_block_deployment,
                        },
                    }
                ],
                "results": [_result(finding, rule_index[finding.rule_id]) for finding in findings],
                "properties": {
                    "environment": result.environment,
                    "suppressedCount": result.suppressed_count,
                    "filteredCount": result.filtered_count,
                },
            }
        ],
    }


def render_sarif(result: ScanResult) -> str:
    return json.dumps(build_sarif(result), indent=2)


def _rule_descriptor(finding: Finding) -> Dict[str, Any]:
    base = finding.base_severity or finding.severity
    descriptor: Dict[str, Any] = {
        "id": finding.rule_id,
        "name": finding.rule_name,
        "shortDescription": {"text": finding.rule_name},
        "fullDescription": {"text": finding.description or finding.rule_name},
        "defaultConfiguration": {"level": sarif_level(base)},
        "properties": {
            "tags": ["security", "secrets", finding.category],
            "severity": base.value,
        },
    }
    if finding.remediation:
        descriptor["help"] = {
            "text": finding.remediation,
            "markdown": f"## Remediation\n\n{finding.remediation}",
        }
    return descriptor


def _result(finding: Finding, index: int) -> Dict[str, Any]:
    region: Dict[str, Any] = {
        "startLine": finding.line_number,
        "startColumn": finding.column_start,
        "endColumn": finding.column_end,
    }
    if finding.end_line is not None:
        region["endLine"] = finding.end_line
    return {
        "ruleId": finding.rule_id,
        "ruleIndex": index,
        "level": sarif_level(finding.severity),
        "message": {"text": f"{finding.rule_name} detected: {finding.redacted_snippet}"},
        "locations": [
            {
                "physicalLocation": {
                    "artifactLocation": {"uri": finding.file_path},
                    "region": region,
                }
            }
        ],
        "partialFingerprints": {"secretHash/v1": finding.fingerprint},
        "properties": {
            "severity": finding.severity.value,
            "confidence": finding.confidence.value,
            "reasonCodes": list(finding.reason_codes),
        },
    }


def _notifications(result: ScanResult) -> List[Dict[str, Any]]:
    notes: List[Dict[str, Any]] = []
    for skipped in sorted(result.skipped_files, key=lambda item: item.path):
        notes.append(
            {
                "level": "warning",
                "message": {"text": f"Skipped {skipped.path}: {skipped.reason}"},
            }
        )
    for skipped in sorted(result.skipped_rules, key=lambda item: (item.path, item.rule_id)):
        notes.append(
            {
                "level": "warning",
                "message": {"text": f"Rule {skipped.rule_id} timed out on {skipped.path}"},
            }
        )
    return notes
