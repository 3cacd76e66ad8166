"""
Plain-language rewriting of a single technical section.
"""
import logging
from typing import Optional

from peptalk_review.core.config import settings
from peptalk_review.core.error_handling import RecordValidationError
from peptalk_review.core.utils import strip_markup, truncate_text
from peptalk_review.models.completion_models import CompletionConfig, CompletionRequest, CompletionResponse
from peptalk_review.services.clients import BaseCompletionClient, OpenAICompletionClient

logger = logging.getLogger(__name__)


def build_summary_request(title: str, content_html: str, subject_name: str) -> CompletionRequest:
    """
    Build the rewriting prompt for one section.

    Markup is stripped first, then the prose is truncated to
    settings.SUMMARY_MAX_INPUT_CHARS.

    Raises:
        RecordValidationError: If no text remains after stripping markup
    """
    plain_text = strip_markup(content_html)
    if not plain_text:
        raise RecordValidationError(f"Section '{title}' has no text content after removing markup")

    content = truncate_text(plain_text, settings.SUMMARY_MAX_INPUT_CHARS)
    user_prompt = settings.SUMMARY_USER_PROMPT_TEMPLATE.format(
        title=title,
        subject_name=subject_name,
        content=content,
    )
    return CompletionRequest(
        system_prompt=settings.SUMMARY_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        max_tokens=settings.SUMMARY_MAX_TOKENS,
        temperature=settings.SUMMARY_TEMPERATURE,
    )


async def generate_summary(
    title: str,
    content_html: str,
    subject_name: str,
    client: BaseCompletionClient
) -> CompletionResponse:
    """Run the rewriting prompt on an existing client and return the raw response."""
    request = build_summary_request(title, content_html, subject_name)
    logger.debug(f"Requesting plain-language summary for '{title}' ({len(request.user_prompt)} prompt chars)")
    return await client.complete(request)


async def summarize_section(
    title: str,
    content_html: str,
    subject_name: str,
    config: Optional[CompletionConfig] = None,
    client: Optional[BaseCompletionClient] = None
) -> str:
    """
    Rewrite one section as a short accessible summary.

    Args:
        title: Section title
        content_html: Section HTML
        subject_name: Peptide name, given to the model for context
        config: Completion settings used when no client is given
            (defaults to CompletionConfig.from_settings())
        client: Pre-initialized client (caller keeps ownership)

    Returns:
        The trimmed summary text

    Raises:
        RecordValidationError: If the section has no text
        CompletionServiceError: If the completion service fails
    """
    if client is not None:
        response = await generate_summary(title, content_html, subject_name, client)
    else:
        async with OpenAICompletionClient(config or CompletionConfig.from_settings()) as owned_client:
            response = await generate_summary(title, content_html, subject_name, owned_client)
    return response.content.strip()
