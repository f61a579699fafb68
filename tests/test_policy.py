from secretguard.policy import BlockMode, apply_visibility_filter, evaluate
from secretguard.result import Finding, ScanResult
from secretguard.severity import Confidence, Severity


def _finding(severity, line=1):
    return Finding(
        rule_id="generic-secret",
        rule_name="Generic Secret Assignment",
        category="credential-provider",
        severity=severity,
        confidence=Confidence.MEDIUM,
        file_path="app.py",
        line_number=line,
        column_start=1,
        column_end=10,
        redacted_snippet="********",
    )


def _result(*severities):
    findings = tuple(_finding(severity, index) for index, severity in enumerate(severities, start=1))
    return ScanResult(root_dir=".", timestamp="2024-01-01T00:00:00+00:00", findings=findings)


def test_never_mode_never_blocks():
    result = _result(Severity.CRITICAL, Severity.HIGH)

    assert evaluate(result, BlockMode.NEVER) is False


def test_always_mode_blocks_on_any_visible_finding():
    assert evaluate(_result(Severity.LOW), BlockMode.ALWAYS) is True
    assert evaluate(_result(), BlockMode.ALWAYS) is False
    assert evaluate(_result(Severity.INFO), BlockMode.ALWAYS, Severity.LOW) is False


def test_auto_mode_thresholds():
    assert evaluate(_result(Severity.CRITICAL), BlockMode.AUTO) is True
    assert evaluate(_result(Severity.HIGH), BlockMode.AUTO) is True
    assert evaluate(_result(Severity.HIGH), BlockMode.AUTO, block_on_high=False) is False
    assert evaluate(_result(Severity.MEDIUM), BlockMode.AUTO) is False
    assert evaluate(_result(Severity.MEDIUM), BlockMode.AUTO, block_on_medium=True) is True
    assert evaluate(_result(Severity.LOW), BlockMode.AUTO) is False


def test_visibility_filter_counts_dropped_findings():
    findings = [_finding(Severity.HIGH), _finding(Severity.LOW, 2), _finding(Severity.INFO, 3)]

    visible, filtered = apply_visibility_filter(findings, Severity.MEDIUM)

    assert [finding.severity for finding in visible] == [Severity.HIGH]
    assert filtered == 2


def test_block_mode_parse_is_case_insensitive():
    assert BlockMode.parse("Always") is BlockMode.ALWAYS
