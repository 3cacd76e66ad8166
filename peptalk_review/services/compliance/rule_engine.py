"""
Pattern rules for deterministic compliance screening.

The rule battery is a declarative table. Each rule maps a regex to an issue
type, severity and description; the engine evaluates rules in table order:
1. Medical advice phrases
2. Medical advice dosing imperatives ("take 250mcg")
3. Dosing labels ("dose: 500")
4. Dosing schedules ("250mcg daily")
5. Purchase verbs
6. Supplier nouns
7. Effect claims without a nearby citation
"""
import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from peptalk_review.core.config import settings
from peptalk_review.core.constants import CITATION_MARKER_PATTERN
from peptalk_review.models.compliance_models import ComplianceIssue, IssueType, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComplianceRule:
    """One entry of the rule table."""

    name: str
    pattern: str
    issue_type: IssueType
    severity: Severity
    description: str
    requires_citation: bool = False
    """If True, every match is checked for a citation marker instead of firing on first match."""

    regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "regex", re.compile(self.pattern, re.IGNORECASE))

    def issue(self, excerpt: str) -> ComplianceIssue:
        return ComplianceIssue(
            type=self.issue_type,
            severity=self.severity,
            description=self.description,
            location=excerpt,
        )


MEDICAL_ADVICE_DESCRIPTION = "Content appears to provide medical advice"
DOSING_DESCRIPTION = "Content includes specific dosing information"
VENDOR_DESCRIPTION = "Content mentions vendors or purchasing"
UNCITED_CLAIM_DESCRIPTION = "Effect claim may be missing citation"

DEFAULT_RULES: List[ComplianceRule] = [
    ComplianceRule(
        name="medical_advice_phrases",
        pattern=r"\b(you should|we recommend|recommended dose|consult your doctor about)\b",
        issue_type=IssueType.MEDICAL_ADVICE,
        severity=Severity.CRITICAL,
        description=MEDICAL_ADVICE_DESCRIPTION,
    ),
    ComplianceRule(
        name="medical_advice_dosing_imperative",
        pattern=r"\b(take|use|administer)\s+\d+\s*(mcg|mg|ml|iu)",
        issue_type=IssueType.MEDICAL_ADVICE,
        severity=Severity.CRITICAL,
        description=MEDICAL_ADVICE_DESCRIPTION,
    ),
    ComplianceRule(
        name="dosing_label",
        pattern=r"\b(dose|dosage|dosing)\s*:?\s*\d+",
        issue_type=IssueType.DOSING,
        severity=Severity.CRITICAL,
        description=DOSING_DESCRIPTION,
    ),
    ComplianceRule(
        name="dosing_schedule",
        pattern=r"\b\d+\s*(mcg|mg|ml|iu)\s+(daily|twice daily|per day|weekly)",
        issue_type=IssueType.DOSING,
        severity=Severity.CRITICAL,
        description=DOSING_DESCRIPTION,
    ),
    ComplianceRule(
        name="vendor_purchase",
        pattern=r"\b(buy|purchase|order|available at|sold by)\b",
        issue_type=IssueType.VENDOR,
        severity=Severity.CRITICAL,
        description=VENDOR_DESCRIPTION,
    ),
    ComplianceRule(
        name="vendor_supplier",
        pattern=r"\b(vendor|supplier|source)\b",
        issue_type=IssueType.VENDOR,
        severity=Severity.CRITICAL,
        description=VENDOR_DESCRIPTION,
    ),
    ComplianceRule(
        name="uncited_claim",
        pattern=r"\b(increase|decrease|improve|reduce|enhance)\w*\s+\w+",
        issue_type=IssueType.CLAIMS,
        severity=Severity.WARNING,
        description=UNCITED_CLAIM_DESCRIPTION,
        requires_citation=True,
    ),
]


class RuleEngine:
    """Evaluates the rule table against concatenated record content."""

    CITATION_PATTERN = re.compile(CITATION_MARKER_PATTERN)

    def __init__(
        self,
        rules: Optional[Sequence[ComplianceRule]] = None,
        citation_window: Optional[int] = None,
        report_all_uncited_claims: Optional[bool] = None
    ):
        """
        Initialize the rule engine.

        Args:
            rules: Rule table (defaults to DEFAULT_RULES)
            citation_window: Characters searched on each side of a claim for a
                citation marker (defaults to settings.COMPLIANCE_CITATION_WINDOW)
            report_all_uncited_claims: Report every uncited claim instead of stopping
                after the first (defaults to settings.COMPLIANCE_REPORT_ALL_UNCITED_CLAIMS)
        """
        self.rules = list(DEFAULT_RULES if rules is None else rules)
        self.citation_window = (
            settings.COMPLIANCE_CITATION_WINDOW if citation_window is None else citation_window
        )
        self.report_all_uncited_claims = (
            settings.COMPLIANCE_REPORT_ALL_UNCITED_CLAIMS
            if report_all_uncited_claims is None else report_all_uncited_claims
        )
        self._rules_by_name = {rule.name: rule for rule in self.rules}

    @property
    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def _has_nearby_citation(self, content: str, start: int, end: int) -> bool:
        context_start = max(0, start - self.citation_window)
        context_end = min(len(content), end + self.citation_window)
        return bool(self.CITATION_PATTERN.search(content[context_start:context_end]))

    def evaluate_rule(self, rule: ComplianceRule, content: str) -> List[ComplianceIssue]:
        """
        Evaluate a single rule.

        Plain rules fire at most once (first match). Citation rules scan every
        match and report uncited ones; unless report_all_uncited_claims is set,
        scanning stops at the first uncited claim.

        Args:
            rule: Rule to evaluate
            content: Text to scan

        Returns:
            Issues raised by this rule (possibly empty)
        """
        if not content:
            return []

        if not rule.requires_citation:
            match = rule.regex.search(content)
            if match:
                logger.debug(f"Rule '{rule.name}' matched: {match.group(0)!r}")
                return [rule.issue(match.group(0))]
            return []

        issues = []
        for match in rule.regex.finditer(content):
            if self._has_nearby_citation(content, match.start(), match.end()):
                continue
            logger.debug(f"Rule '{rule.name}' found uncited claim: {match.group(0)!r}")
            issues.append(rule.issue(match.group(0)))
            if not self.report_all_uncited_claims:
                break
        return issues

    def evaluate(self, content: str, enabled_rules: Optional[List[str]] = None) -> List[ComplianceIssue]:
        """
        Run the enabled rules in table order.

        Args:
            content: Concatenated record text
            enabled_rules: Rule names to run (None = settings.compliance_rules_list)

        Returns:
            Issues in rule-evaluation order (not content order)
        """
        if enabled_rules is None:
            enabled_rules = settings.compliance_rules_list

        enabled = set(enabled_rules)
        for name in enabled_rules:
            if name not in self._rules_by_name:
                logger.warning(f"Unknown compliance rule '{name}' - skipping")

        issues: List[ComplianceIssue] = []
        for rule in self.rules:
            if rule.name in enabled:
                issues.extend(self.evaluate_rule(rule, content))
        return issues
