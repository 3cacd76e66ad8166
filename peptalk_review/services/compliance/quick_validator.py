"""
Deterministic pre-validation: cheap regex screening before semantic review.
"""
import logging
from typing import Any, List, Mapping, Optional, Union

from peptalk_review.core.constants import (
    FAST_CONTENT_SEPARATOR,
    FAST_SCORE_PENALTY_PER_ISSUE,
    MAX_SCORE,
    MIN_PASSING_FAST_SCORE,
)
from peptalk_review.core.error_handling import track_operation
from peptalk_review.core.logging import log_context
from peptalk_review.models.compliance_models import (
    ComplianceIssue,
    ComplianceResult,
    Record,
    ReviewStage,
    Severity,
    coerce_record,
)
from .rule_engine import RuleEngine

logger = logging.getLogger(__name__)


def combine_content(record: Record) -> str:
    """Concatenate the summary and every section body for rule scanning."""
    parts = [record.summary_html] + [section.content_html for section in record.sections]
    return FAST_CONTENT_SEPARATOR.join(parts)


def score_issues(issues: List[ComplianceIssue]) -> int:
    """
    Heuristic score for the deterministic stage.

    0 when any issue is critical, otherwise 100 minus 10 per issue, floored at 70.
    """
    if any(issue.severity == Severity.CRITICAL for issue in issues):
        return 0
    return max(MIN_PASSING_FAST_SCORE, MAX_SCORE - FAST_SCORE_PENALTY_PER_ISSUE * len(issues))


@track_operation("fast validation")
def validate_fast(
    record: Union[Record, Mapping[str, Any]],
    rule_engine: Optional[RuleEngine] = None,
    enabled_rules: Optional[List[str]] = None
) -> ComplianceResult:
    """
    Screen a record with the pattern rule battery.

    Args:
        record: Record to screen (validated before scanning)
        rule_engine: Engine to use (defaults to a RuleEngine built from settings)
        enabled_rules: Rule names to run (None = settings.compliance_rules_list)

    Returns:
        ComplianceResult with stage=fast

    Raises:
        RecordValidationError: If the record is malformed
    """
    record = coerce_record(record)
    engine = rule_engine or RuleEngine()

    with log_context(subject=record.name, stage=ReviewStage.FAST.value):
        issues = engine.evaluate(combine_content(record), enabled_rules)
        passed = not any(issue.severity == Severity.CRITICAL for issue in issues)
        score = score_issues(issues)

        if issues:
            logger.info(
                f"Fast validation of '{record.name}': {len(issues)} issue(s), "
                f"{sum(1 for i in issues if i.severity == Severity.CRITICAL)} critical, score {score}"
            )
        else:
            logger.info(f"Fast validation of '{record.name}': no issues detected")

        return ComplianceResult(passed=passed, score=score, issues=issues, stage=ReviewStage.FAST)
