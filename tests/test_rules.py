import pytest

from secretguard.engine import run_scan
from secretguard.errors import RuleDefinitionError
from secretguard.rules import Rule, RuleCategory, RuleRegistry, default_registry, load_rule_file
from secretguard.rules.builtin import BUILTIN_RULES
from secretguard.severity import Severity


def test_default_registry_has_unique_ids():
    registry = default_registry()

    ids = [rule.id for rule in registry.all_rules()]
    assert len(ids) == len(set(ids)) == len(BUILTIN_RULES)
    assert registry.rule_by_id("aws-access-key").base_severity is Severity.CRITICAL
    assert registry.rule_by_id("does-not-exist") is None


def test_every_builtin_rule_has_an_example():
    for rule in BUILTIN_RULES:
        assert rule.example, rule.id


@pytest.mark.parametrize("rule", BUILTIN_RULES, ids=lambda rule: rule.id)
def test_builtin_example_is_detected_once(tmp_path, rule):
    (tmp_path / "sample.txt").write_text(rule.example + "\n", encoding="utf-8")

    result = run_scan(tmp_path)

    own = [finding for finding in result.findings if finding.rule_id == rule.id]
    assert len(own) == 1
    assert own[0].severity is rule.base_severity
    assert own[0].line_number == 1


def test_registry_rejects_colliding_rule():
    registry = default_registry()
    duplicate = Rule(
        id="aws-access-key",
        name="Shadow",
        category=RuleCategory.CREDENTIAL_PROVIDER,
        pattern=r"AKIA[0-9A-Z]{16}",
        base_severity=Severity.LOW,
    )

    with pytest.raises(RuleDefinitionError):
        registry.extend([duplicate])
    assert registry.rule_by_id("aws-access-key").base_severity is Severity.CRITICAL


def test_registry_extend_is_atomic():
    registry = RuleRegistry()
    first = Rule(
        id="internal-token",
        name="Internal token",
        category=RuleCategory.CREDENTIAL_PROVIDER,
        pattern=r"itk_[a-z0-9]{20}",
        base_severity=Severity.HIGH,
    )

    with pytest.raises(RuleDefinitionError):
        registry.extend([first, first])
    assert len(registry) == 0


def test_rule_with_invalid_pattern_is_rejected():
    with pytest.raises(RuleDefinitionError):
        Rule(
            id="broken",
            name="Broken",
            category=RuleCategory.CREDENTIAL_PROVIDER,
            pattern=r"([unclosed",
            base_severity=Severity.HIGH,
        )


def test_load_rule_file_extends_builtins(tmp_path):
    rules_file = tmp_path / "rules.yaml"
    rules_file.write_text(
        """
rules:
  - id: acme-token
    name: ACME deploy token
    category: credential-provider
    pattern: "acme_[A-Za-z0-9]{24}"
    severity: HIGH
    minMatchLength: 29
""".strip(),
        encoding="utf-8",
    )

    registry = load_rule_file(rules_file)

    rule = registry.rule_by_id("acme-token")
    assert rule is not None
    assert rule.base_severity is Severity.HIGH
    assert rule.min_match_length == 29
    assert "aws-access-key" in registry


def test_load_rule_file_rejects_unknown_severity(tmp_path):
    rules_file = tmp_path / "rules.json"
    rules_file.write_text(
        '[{"id": "x-token", "category": "credential-provider", "pattern": "x_[a-z]{10}", "severity": "urgent"}]',
        encoding="utf-8",
    )

    with pytest.raises(RuleDefinitionError):
        load_rule_file(rules_file)


def test_load_rule_file_reports_missing_keys(tmp_path):
    rules_file = tmp_path / "rules.yaml"
    rules_file.write_text("- id: incomplete\n  pattern: abc\n", encoding="utf-8")

    with pytest.raises(RuleDefinitionError, match="missing keys"):
        load_rule_file(rules_file)


def test_load_rule_file_reads_file_extensions(tmp_path):
    rules_file = tmp_path / "rules.yaml"
    rules_file.write_text(
        """
- id: internal-token
  category: credential-provider
  pattern: "itk_[a-z0-9]{16}"
  severity: high
  fileExtensions: [".ENV", ".tfvars"]
""".strip(),
        encoding="utf-8",
    )

    rule = load_rule_file(rules_file).rule_by_id("internal-token")

    assert rule.file_extensions == (".env", ".tfvars")
    assert rule.applies_to("deploy/prod.env")
    assert rule.applies_to("infra/main.tfvars")
    assert not rule.applies_to("src/app.py")
    assert default_registry().rule_by_id("aws-access-key").applies_to("src/app.py")


def test_load_rule_file_rejects_non_list_file_extensions(tmp_path):
    rules_file = tmp_path / "rules.yaml"
    rules_file.write_text(
        '- id: t\n  category: credential-provider\n  pattern: "t_[a-z]{10}"\n  severity: high\n  fileExtensions: 3\n',
        encoding="utf-8",
    )

    with pytest.raises(RuleDefinitionError, match="fileExtensions"):
        load_rule_file(rules_file)
