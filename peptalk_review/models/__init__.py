"""Pydantic models for records, compliance results and the completion-service contract."""

from .compliance_models import (
    IssueType,
    Severity,
    ReviewStage,
    Section,
    Record,
    ComplianceIssue,
    ComplianceResult,
    coerce_record,
    coerce_sections
)
from .completion_models import (
    CompletionConfig,
    CompletionRequest,
    CompletionResponse,
    TokenUsage
)

__all__ = [
    "IssueType",
    "Severity",
    "ReviewStage",
    "Section",
    "Record",
    "ComplianceIssue",
    "ComplianceResult",
    "coerce_record",
    "coerce_sections",
    "CompletionConfig",
    "CompletionRequest",
    "CompletionResponse",
    "TokenUsage"
]
