"""Services package for completion clients, compliance review and plain-language summarization."""

from peptalk_review.services.clients import BaseCompletionClient, OpenAICompletionClient, estimate_cost
from peptalk_review.services.compliance import ComplianceService, review, validate_fast, validate_deep, ensure_publishable
from peptalk_review.services.summarization import summarize_section, summarize_all, summarize_record

__all__ = [
    'BaseCompletionClient',
    'OpenAICompletionClient',
    'estimate_cost',
    'ComplianceService',
    'review',
    'validate_fast',
    'validate_deep',
    'ensure_publishable',
    'summarize_section',
    'summarize_all',
    'summarize_record',
]
