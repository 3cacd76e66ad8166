"""
Semantic compliance review using the completion service.

Catches paraphrased or implicit advice the pattern rules cannot see. The reviewer's
JSON verdict is treated as untrusted input: every field is type-checked and
defaulted individually.
"""
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Union

from peptalk_review.core.config import settings
from peptalk_review.core.constants import MAX_SCORE, SEMANTIC_BLOCK_SEPARATOR
from peptalk_review.core.error_handling import MalformedCompletionError, track_operation
from peptalk_review.core.logging import log_context
from peptalk_review.models.completion_models import CompletionConfig, CompletionRequest
from peptalk_review.models.compliance_models import (
    ComplianceIssue,
    ComplianceResult,
    IssueType,
    Record,
    ReviewStage,
    Severity,
    coerce_record,
)
from peptalk_review.services.clients import BaseCompletionClient, OpenAICompletionClient

logger = logging.getLogger(__name__)

UNITEMIZED_REJECTION = "Reviewer rejected the content without itemizing a critical violation"
UNPARSEABLE_VERDICT = "Semantic review response could not be parsed"


def serialize_record(record: Record) -> str:
    """Render a record as the reviewer's user prompt."""
    blocks = [
        f"PEPTIDE: {record.name}",
        f"SUMMARY: {record.summary_html}",
    ]
    blocks.extend(f'SECTION "{section.title}": {section.content_html}' for section in record.sections)
    return SEMANTIC_BLOCK_SEPARATOR.join(blocks)


def _coerce_score(value: Any) -> int:
    # bool is an int subclass; treat it as missing
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(0, min(MAX_SCORE, int(round(value))))


def _coerce_issue(raw: Any) -> Optional[ComplianceIssue]:
    if not isinstance(raw, dict):
        logger.debug(f"Dropping non-object issue from reviewer: {raw!r}")
        return None

    raw_type = raw.get("type")
    try:
        issue_type = IssueType(raw_type.lower()) if isinstance(raw_type, str) else IssueType.OTHER
    except ValueError:
        issue_type = IssueType.OTHER

    raw_severity = raw.get("severity")
    try:
        severity = Severity(raw_severity.lower()) if isinstance(raw_severity, str) else Severity.WARNING
    except ValueError:
        severity = Severity.WARNING

    description = raw.get("description")
    if not isinstance(description, str) or not description.strip():
        description = "Unspecified compliance issue"

    location = raw.get("location")
    if not isinstance(location, str) or not location:
        location = None

    return ComplianceIssue(type=issue_type, severity=severity, description=description, location=location)


def parse_verdict(payload: Dict[str, Any]) -> ComplianceResult:
    """
    Build a ComplianceResult from the reviewer's JSON object.

    Defaults: missing/invalid passed -> False, score -> 0, issues -> [].
    Unknown issue types map to "other", unknown severities to "warning".
    The result always satisfies passed == (no critical issue): a passing verdict
    that lists a critical issue becomes failing, and a failing verdict with no
    critical issue gains a synthesized critical "other" issue.

    Args:
        payload: Parsed JSON object from the completion service

    Returns:
        ComplianceResult with stage=semantic
    """
    raw_passed = payload.get("passed")
    passed = raw_passed if isinstance(raw_passed, bool) else False
    score = _coerce_score(payload.get("score"))

    raw_issues = payload.get("issues")
    issues: List[ComplianceIssue] = []
    if isinstance(raw_issues, list):
        issues = [issue for issue in (_coerce_issue(item) for item in raw_issues) if issue is not None]

    has_critical = any(issue.severity == Severity.CRITICAL for issue in issues)
    if passed and has_critical:
        logger.warning("Reviewer marked content as passed but listed critical issues - treating as failed")
        passed = False
    elif not passed and not has_critical:
        issues.append(ComplianceIssue(
            type=IssueType.OTHER,
            severity=Severity.CRITICAL,
            description=UNITEMIZED_REJECTION,
        ))

    return ComplianceResult(passed=passed, score=score, issues=issues, stage=ReviewStage.SEMANTIC)


def _unparseable_result(error: MalformedCompletionError) -> ComplianceResult:
    return ComplianceResult(
        passed=False,
        score=0,
        issues=[ComplianceIssue(
            type=IssueType.OTHER,
            severity=Severity.CRITICAL,
            description=f"{UNPARSEABLE_VERDICT}: {error}",
        )],
        stage=ReviewStage.SEMANTIC,
    )


@track_operation("semantic review")
async def validate_deep(
    record: Union[Record, Mapping[str, Any]],
    config: Optional[CompletionConfig] = None,
    client: Optional[BaseCompletionClient] = None,
    best_effort: Optional[bool] = None
) -> ComplianceResult:
    """
    Review a record with the completion service.

    Args:
        record: Record to review (validated before any remote call)
        config: Completion settings; used to build a client when none is given
            (defaults to CompletionConfig.from_settings())
        client: Pre-initialized client (caller keeps ownership)
        best_effort: Turn a malformed verdict into a failing result instead of
            raising (defaults to settings.COMPLIANCE_BEST_EFFORT)

    Returns:
        ComplianceResult with stage=semantic

    Raises:
        RecordValidationError: If the record is malformed
        CompletionServiceError: If the review could not run (auth, rate limit,
            transport, timeout, or malformed output outside best-effort mode)
    """
    record = coerce_record(record)
    if best_effort is None:
        best_effort = settings.COMPLIANCE_BEST_EFFORT

    request = CompletionRequest(
        system_prompt=settings.COMPLIANCE_SYSTEM_PROMPT,
        user_prompt=serialize_record(record),
        max_tokens=settings.COMPLIANCE_MAX_TOKENS,
        temperature=settings.COMPLIANCE_TEMPERATURE,
        json_response=True,
    )

    with log_context(subject=record.name, stage=ReviewStage.SEMANTIC.value):
        if client is not None:
            response = await client.complete(request)
        else:
            async with OpenAICompletionClient(config or CompletionConfig.from_settings()) as owned_client:
                response = await owned_client.complete(request)

        try:
            result = parse_verdict(response.json_payload())
        except MalformedCompletionError as e:
            if not best_effort:
                raise
            logger.warning(f"Semantic review of '{record.name}' returned malformed output (best-effort mode): {e}")
            return _unparseable_result(e)

        logger.info(
            f"Semantic review of '{record.name}': {'PASSED' if result.passed else 'FAILED'} "
            f"score {result.score}/100, {len(result.issues)} issue(s)"
        )
        return result
