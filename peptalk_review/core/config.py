"""
Configuration settings for the review pipeline.
"""
from pydantic_settings import BaseSettings
from typing import Optional, List


# Rule names understood by the deterministic pre-validator, in evaluation order
ALL_COMPLIANCE_RULES = [
    'medical_advice_phrases',
    'medical_advice_dosing_imperative',
    'dosing_label',
    'dosing_schedule',
    'vendor_purchase',
    'vendor_supplier',
    'uncited_claim',
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # Options: "text", "json"
    LOG_INCLUDE_REQUEST_ID: bool = True

    # Performance Monitoring
    RESPONSE_TIME_WARNING_THRESHOLD_MS: int = 30000

    # Completion Service (OpenAI-compatible)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_BASE_URL: Optional[str] = None  # None = SDK default endpoint
    COMPLETION_TIMEOUT_SECONDS: float = 60.0
    COMPLETION_MAX_RETRIES: int = 0  # Retry policy belongs to whoever owns the client
    HTTP_MAX_KEEPALIVE_CONNECTIONS: int = 10
    HTTP_MAX_CONNECTIONS: int = 20

    # Cost estimation (USD per million tokens)
    COST_PER_1M_INPUT_TOKENS: float = 2.5
    COST_PER_1M_OUTPUT_TOKENS: float = 10.0

    # Deterministic pre-validation
    # Comma-separated list of enabled rules, or "all" to enable all
    COMPLIANCE_RULES_ENABLED: str = "all"
    COMPLIANCE_CITATION_WINDOW: int = 50  # Characters on each side of an effect claim
    COMPLIANCE_REPORT_ALL_UNCITED_CLAIMS: bool = False  # False = stop after first uncited claim

    # Semantic review
    COMPLIANCE_TEMPERATURE: float = 0.2
    COMPLIANCE_MAX_TOKENS: int = 2000
    COMPLIANCE_BEST_EFFORT: bool = False  # Malformed reviewer output -> failing result instead of error

    # Plain-language summaries
    SUMMARY_MAX_INPUT_CHARS: int = 3000
    SUMMARY_MAX_TOKENS: int = 200
    SUMMARY_TEMPERATURE: float = 0.5
    SUMMARY_MAX_CONCURRENCY: int = 1  # 1 = strictly sequential

    # Prompts (can be overridden via environment variables)
    COMPLIANCE_SYSTEM_PROMPT: str = """You are a compliance validator for educational peptide content.

REVIEW THE CONTENT FOR VIOLATIONS:

CRITICAL (must fix):
1. Medical advice (e.g., "you should take", "we recommend", "consult your doctor about dosing")
2. Dosage recommendations (e.g., "take 250mcg daily", "typical dose is")
3. Vendor mentions or purchase guidance (e.g., "buy from X", "available at Y")
4. Unsubstantiated claims without citations

WARNINGS (should fix):
5. Promotional language (e.g., "miracle", "revolutionary", "breakthrough")
6. Absolute claims without qualifiers (e.g., "always works", "guaranteed")
7. Missing citations for empirical claims

EVALUATE:
- Assign a compliance score (0-100, where 100 = perfect compliance)
- List all issues found with severity levels
- Provide specific quotes showing violations

RETURN JSON:
{
  "passed": boolean,
  "score": number,
  "issues": [
    {
      "type": "medical_advice" | "dosing" | "vendor" | "claims" | "other",
      "severity": "critical" | "warning" | "info",
      "description": "explanation",
      "location": "exact quote from content"
    }
  ]
}

Be strict but fair. Educational content should inform, not prescribe."""

    SUMMARY_SYSTEM_PROMPT: str = """You are an expert at translating complex scientific and medical content into simple, accessible language for non-scientists.

Your task is to create plain-language summaries that:
- Use conversational, everyday language (8th-grade reading level)
- Avoid jargon and technical terms (or explain them if necessary)
- Are 2-3 sentences long
- Focus on practical implications and what it means for regular people
- Are accurate but simplified
- Use active voice and present tense when possible

IMPORTANT: Output ONLY the plain language summary text. No formatting, no labels, no markdown, no extra commentary."""

    SUMMARY_USER_PROMPT_TEMPLATE: str = """Section Title: "{title}"
Peptide: {subject_name}

Technical Content:
{content}

Task: Write a 2-3 sentence plain language summary that explains what this section means for a regular person who isn't a scientist. Focus on practical implications and use simple, conversational language."""

    @property
    def compliance_rules_list(self) -> List[str]:
        """Parse comma-separated rule names into list."""
        if self.COMPLIANCE_RULES_ENABLED.lower() == "all":
            return list(ALL_COMPLIANCE_RULES)
        return [r.strip() for r in self.COMPLIANCE_RULES_ENABLED.split(',') if r.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
