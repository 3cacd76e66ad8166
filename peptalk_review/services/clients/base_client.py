"""
Base client for the completion service.

This module provides an abstract base class for completion-service clients,
establishing a consistent interface and shared lifecycle handling.
"""
from abc import ABC, abstractmethod
from typing import Optional
import httpx
import logging

from peptalk_review.core.config import settings
from peptalk_review.models.completion_models import CompletionConfig, CompletionRequest, CompletionResponse, TokenUsage

logger = logging.getLogger(__name__)


class BaseCompletionClient(ABC):
    """Abstract base class for all completion-service clients.

    Provides common functionality for API clients including:
    - HTTP client management with connection pooling
    - Async context manager support
    - Credential validation

    Subclasses must implement:
    - _validate_credentials(): Validate API credentials
    - complete(): Run one prompt and return the text answer
    """

    def __init__(self, config: CompletionConfig):
        """Initialize the completion client.

        Args:
            config: Explicit connection settings (key, model, endpoint, timeout)

        Raises:
            ClientConfigurationError: If credentials are invalid
        """
        self.config = config
        self._http_client: Optional[httpx.AsyncClient] = None

        # Validate credentials (implemented by subclass)
        self._validate_credentials()

        logger.info(f"Initialized {self.__class__.__name__} with model={config.model}, timeout={config.timeout}s")

    @abstractmethod
    def _validate_credentials(self) -> None:
        """Validate API credentials.

        Raises:
            ClientConfigurationError: If credentials are missing or invalid
        """
        pass

    async def __aenter__(self):
        """Async context manager entry.

        Returns:
            Self for use in 'async with' statements

        Example:
            async with OpenAICompletionClient(config) as client:
                response = await client.complete(request)
        """
        logger.debug(f"{self.__class__.__name__} context manager entered")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit.

        Ensures HTTP client is properly closed, even if exceptions occur.
        """
        await self.close()
        logger.debug(f"{self.__class__.__name__} context manager exited")

    async def close(self):
        """Close the HTTP client and release resources.

        Safe to call multiple times.
        """
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug(f"{self.__class__.__name__} HTTP client closed")

    def _create_http_client(self) -> httpx.AsyncClient:
        """Create HTTP client with connection pooling.

        Returns:
            Configured httpx.AsyncClient instance
        """
        return httpx.AsyncClient(
            timeout=self.config.timeout,
            limits=httpx.Limits(
                max_keepalive_connections=settings.HTTP_MAX_KEEPALIVE_CONNECTIONS,
                max_connections=settings.HTTP_MAX_CONNECTIONS
            )
        )

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Run a single completion.

        Args:
            request: System/user prompts plus sampling limits

        Returns:
            CompletionResponse with the raw text content and token usage

        Raises:
            CompletionAuthenticationError: Credentials rejected
            CompletionRateLimitError: Service is throttling
            CompletionTimeoutError: Call exceeded config.timeout
            CompletionServiceError: Any other transport or API failure
        """
        pass

    def __repr__(self) -> str:
        """String representation of the client."""
        return (
            f"{self.__class__.__name__}("
            f"model={self.config.model}, "
            f"base_url={self.config.base_url}, "
            f"timeout={self.config.timeout}s"
            ")"
        )


def estimate_cost(
    usage: TokenUsage,
    input_cost_per_million: Optional[float] = None,
    output_cost_per_million: Optional[float] = None
) -> float:
    """
    Estimate the USD cost of a completion from its token usage.

    Args:
        usage: Token counts reported by the service
        input_cost_per_million: Price per million prompt tokens (defaults to settings)
        output_cost_per_million: Price per million completion tokens (defaults to settings)

    Returns:
        Estimated cost in USD
    """
    input_rate = settings.COST_PER_1M_INPUT_TOKENS if input_cost_per_million is None else input_cost_per_million
    output_rate = settings.COST_PER_1M_OUTPUT_TOKENS if output_cost_per_million is None else output_cost_per_million
    return (usage.input_tokens / 1_000_000) * input_rate + (usage.output_tokens / 1_000_000) * output_rate
