"""
Compliance review package for synthesized peptide content.

- rule_engine.py: declarative regex rule table and evaluator
- quick_validator.py: deterministic pre-validation and heuristic score
- semantic_reviewer.py: completion-service review with defensive verdict parsing
- compliance_orchestrator.py: fast-then-semantic fusion and the publication gate
"""
from .rule_engine import ComplianceRule, RuleEngine, DEFAULT_RULES
from .quick_validator import validate_fast, combine_content, score_issues
from .semantic_reviewer import validate_deep, parse_verdict, serialize_record
from .compliance_orchestrator import ComplianceService, review, ensure_publishable

__all__ = [
    'ComplianceRule',
    'RuleEngine',
    'DEFAULT_RULES',
    'validate_fast',
    'combine_content',
    'score_issues',
    'validate_deep',
    'parse_verdict',
    'serialize_record',
    'ComplianceService',
    'review',
    'ensure_publishable',
]
