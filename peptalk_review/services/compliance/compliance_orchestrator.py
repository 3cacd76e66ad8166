"""
Compliance orchestration: fast pattern screening, then semantic review.

Fusion policy:
- The deterministic stage always runs first.
- If it finds a critical issue its result is returned as-is (no remote call).
- Otherwise the semantic result is returned, since only that stage can catch
  paraphrased violations and award a calibrated score.
"""
import logging
from typing import Any, Mapping, Optional, Union

from peptalk_review.core.error_handling import ComplianceRejectedError, track_operation
from peptalk_review.models.completion_models import CompletionConfig
from peptalk_review.models.compliance_models import ComplianceResult, Record, coerce_record
from peptalk_review.services.clients import BaseCompletionClient

from .quick_validator import validate_fast
from .rule_engine import RuleEngine
from .semantic_reviewer import validate_deep

logger = logging.getLogger(__name__)


class ComplianceService:
    """Runs both validators against records with a shared rule engine and client."""

    def __init__(
        self,
        config: Optional[CompletionConfig] = None,
        client: Optional[BaseCompletionClient] = None,
        rule_engine: Optional[RuleEngine] = None,
        best_effort: Optional[bool] = None
    ):
        """
        Initialize compliance service.

        Args:
            config: Completion settings used when no client is injected
            client: Pre-initialized completion client (caller keeps ownership)
            rule_engine: Rule engine for the fast stage (defaults to settings-driven engine)
            best_effort: Passed through to the semantic reviewer
        """
        self.config = config
        self.client = client
        self.rule_engine = rule_engine or RuleEngine()
        self.best_effort = best_effort

    # ============================================================================
    # DELEGATED METHODS
    # ============================================================================

    def validate_fast(self, record: Union[Record, Mapping[str, Any]]) -> ComplianceResult:
        """Delegate to the deterministic pre-validator."""
        return validate_fast(record, rule_engine=self.rule_engine)

    async def validate_deep(self, record: Union[Record, Mapping[str, Any]]) -> ComplianceResult:
        """Delegate to the semantic reviewer."""
        return await validate_deep(record, self.config, client=self.client, best_effort=self.best_effort)

    # ============================================================================
    # ORCHESTRATION
    # ============================================================================

    async def review(
        self,
        record: Union[Record, Mapping[str, Any]],
        skip_semantic: bool = False
    ) -> ComplianceResult:
        """
        Review a record for publication.

        Args:
            record: Record to review (validated before any remote call)
            skip_semantic: Return the fast result even when it passes

        Returns:
            The fast result when it fails (or skip_semantic is set), otherwise
            the semantic result

        Raises:
            RecordValidationError: If the record is malformed
            CompletionServiceError: If the semantic stage could not run
        """
        record = coerce_record(record)

        fast_result = self.validate_fast(record)
        if not fast_result.passed:
            logger.info(
                f"'{record.name}' rejected by fast validation "
                f"({len(fast_result.critical_issues)} critical issue(s)) - skipping semantic review"
            )
            return fast_result

        if skip_semantic:
            logger.info(f"'{record.name}' passed fast validation - semantic review skipped")
            return fast_result

        if fast_result.issues:
            logger.info(
                f"'{record.name}' passed fast validation with {len(fast_result.issues)} warning(s) "
                f"- running semantic review"
            )
        return await self.validate_deep(record)


@track_operation("compliance review")
async def review(
    record: Union[Record, Mapping[str, Any]],
    config: Optional[CompletionConfig] = None,
    client: Optional[BaseCompletionClient] = None,
    skip_semantic: bool = False,
    best_effort: Optional[bool] = None,
    rule_engine: Optional[RuleEngine] = None
) -> ComplianceResult:
    """
    Single validation entry point.

    Args:
        record: Record to review
        config: Completion settings (defaults to CompletionConfig.from_settings()
            when the semantic stage runs and no client is injected)
        client: Pre-initialized completion client
        skip_semantic: Only run the deterministic stage
        best_effort: Malformed reviewer output becomes a failing result instead of an error
        rule_engine: Custom rule engine for the fast stage

    Returns:
        ComplianceResult from the stage that decided the outcome
    """
    service = ComplianceService(config=config, client=client, rule_engine=rule_engine, best_effort=best_effort)
    return await service.review(record, skip_semantic=skip_semantic)


def ensure_publishable(result: ComplianceResult) -> ComplianceResult:
    """
    Gate publication on a review result.

    Args:
        result: Result from review()

    Returns:
        The same result when it passed

    Raises:
        ComplianceRejectedError: Carrying the full result when it did not pass
    """
    if not result.passed:
        raise ComplianceRejectedError(result)
    return result
