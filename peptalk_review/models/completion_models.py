"""
Pydantic models for the completion-service contract.
"""
import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

from peptalk_review.core.error_handling import ClientConfigurationError, MalformedCompletionError


class CompletionConfig(BaseModel):
    """Connection settings for the completion service.

    Passed explicitly into every validator and summarizer call; there is no
    process-wide client.
    """

    api_key: SecretStr = Field(..., description="API key for the completion service")
    model: str = Field(default="gpt-4o", description="Model identifier")
    base_url: Optional[str] = Field(default=None, description="Override for OpenAI-compatible endpoints")
    timeout: float = Field(default=60.0, gt=0, description="Per-call timeout in seconds")
    max_retries: int = Field(default=0, ge=0, description="SDK-level retries (0 = fail fast)")

    @field_validator('api_key')
    @classmethod
    def validate_api_key(cls, v: SecretStr) -> SecretStr:
        """Reject blank keys early instead of at the first remote call."""
        if not v.get_secret_value().strip():
            raise ValueError("api_key cannot be empty")
        return v

    @classmethod
    def from_settings(cls, settings=None) -> "CompletionConfig":
        """
        Build a config from environment-backed settings.

        Raises:
            ClientConfigurationError: If OPENAI_API_KEY is not configured
        """
        if settings is None:
            from peptalk_review.core.config import settings
        if not settings.OPENAI_API_KEY:
            raise ClientConfigurationError(
                "Completion service API key must be provided via OPENAI_API_KEY "
                "(environment variable or .env file)"
            )
        return cls(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.COMPLETION_TIMEOUT_SECONDS,
            max_retries=settings.COMPLETION_MAX_RETRIES,
        )


class CompletionRequest(BaseModel):
    """A single prompt sent to the completion service."""

    system_prompt: str
    user_prompt: str
    max_tokens: int = Field(default=1000, gt=0)
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    json_response: bool = Field(default=False, description="Request a JSON-object constrained completion")


class TokenUsage(BaseModel):
    """Token accounting reported by the completion service."""

    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class CompletionResponse(BaseModel):
    """Text returned by the completion service."""

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)

    def json_payload(self) -> Dict[str, Any]:
        """
        Parse the content as a JSON object.

        Returns:
            Parsed object

        Raises:
            MalformedCompletionError: If content is not valid JSON or not an object
        """
        try:
            payload = json.loads(self.content)
        except (TypeError, ValueError) as e:
            raise MalformedCompletionError(f"Completion was not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise MalformedCompletionError(
                f"Completion JSON must be an object, got {type(payload).__name__}"
            )
        return payload
