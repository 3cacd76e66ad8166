"""
OpenAI-backed client for compliance review and plain-language rewriting.
"""
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from peptalk_review.core.error_handling import (
    ClientConfigurationError,
    CompletionAuthenticationError,
    CompletionRateLimitError,
    CompletionServiceError,
    CompletionTimeoutError,
    MalformedCompletionError,
    request_id_var,
)
from peptalk_review.models.completion_models import CompletionRequest, CompletionResponse, TokenUsage
from .base_client import BaseCompletionClient

logger = logging.getLogger(__name__)


class OpenAICompletionClient(BaseCompletionClient):
    """Completion client using the OpenAI Chat Completions API (or a compatible endpoint)."""

    def __init__(self, config):
        self._sdk_client: Optional[AsyncOpenAI] = None
        super().__init__(config)

    def _validate_credentials(self) -> None:
        if not self.config.api_key.get_secret_value():
            raise ClientConfigurationError(
                "OpenAI API key must be provided in CompletionConfig.api_key"
            )

    def _get_sdk_client(self) -> AsyncOpenAI:
        """Create the SDK client on first use, sharing one pooled HTTP client."""
        if self._sdk_client is None:
            if self._http_client is None:
                self._http_client = self._create_http_client()
            self._sdk_client = AsyncOpenAI(
                api_key=self.config.api_key.get_secret_value(),
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
                http_client=self._http_client,
            )
        return self._sdk_client

    async def close(self):
        self._sdk_client = None
        await super().close()

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """
        Run one chat completion.

        Args:
            request: Prompts, token limit, temperature and JSON mode flag

        Returns:
            CompletionResponse with stripped text content and usage

        Raises:
            CompletionServiceError (or a subclass) on any remote failure
        """
        req_id = request_id_var.get()
        client = self._get_sdk_client()

        kwargs = {}
        if request.json_response:
            kwargs["response_format"] = {"type": "json_object"}

        logger.debug(
            f"[{req_id}] Sending completion request (model={self.config.model}, "
            f"max_tokens={request.max_tokens}, temperature={request.temperature}, "
            f"json={request.json_response})"
        )

        try:
            response = await client.chat.completions.create(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": request.system_prompt},
                    {"role": "user", "content": request.user_prompt},
                ],
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                **kwargs
            )
        except openai.AuthenticationError as e:
            raise CompletionAuthenticationError(f"OpenAI API authentication failed: {e}") from e
        except openai.PermissionDeniedError as e:
            raise CompletionAuthenticationError(f"OpenAI API permission denied: {e}") from e
        except openai.RateLimitError as e:
            raise CompletionRateLimitError(f"OpenAI API rate limit: {e}") from e
        except openai.APITimeoutError as e:
            raise CompletionTimeoutError(
                f"OpenAI API call timed out after {self.config.timeout}s"
            ) from e
        except openai.APIConnectionError as e:
            raise CompletionServiceError(f"OpenAI API connection error: {e}") from e
        except openai.APIStatusError as e:
            raise CompletionServiceError(
                f"OpenAI API error (status {e.status_code}): {e}",
                retryable=e.status_code >= 500
            ) from e
        except openai.APIError as e:
            raise CompletionServiceError(f"OpenAI API error: {e}") from e

        if not response.choices:
            raise MalformedCompletionError("OpenAI API returned no choices")

        content = response.choices[0].message.content
        if content is None:
            raise MalformedCompletionError("OpenAI API returned an empty message")

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )

        logger.debug(f"[{req_id}] Completion received ({len(content)} chars, {usage.output_tokens} output tokens)")
        return CompletionResponse(content=content.strip(), usage=usage)
