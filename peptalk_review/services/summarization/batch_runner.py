"""
Batch plain-language summarization with per-section failure isolation.

Every section yields exactly one outcome, in input order. A section whose
summary fails is passed through unchanged; the failure never propagates past
that section. Cancellation is not a failure and always propagates.
"""
import asyncio
import logging
import time
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, List, Mapping, Optional, Union

from peptalk_review.core.config import settings
from peptalk_review.core.error_handling import track_operation
from peptalk_review.core.logging import log_context
from peptalk_review.models.completion_models import CompletionConfig, TokenUsage
from peptalk_review.models.compliance_models import Record, Section, coerce_record, coerce_sections
from peptalk_review.services.clients import BaseCompletionClient, OpenAICompletionClient, estimate_cost

from .section_summarizer import generate_summary

logger = logging.getLogger(__name__)

SectionInput = Union[Section, Mapping[str, Any]]

# Stage label for log records emitted while summarizing
SUMMARY_STAGE = "summary"


@dataclass
class SummarizedSection:
    """Section that received a plain-language summary."""
    section: Section
    usage: TokenUsage = field(default_factory=TokenUsage)
    ok: bool = field(default=True, init=False)


@dataclass
class FailedSection:
    """Section whose summary could not be generated; `section` is the untouched input."""
    section: Section
    reason: str
    ok: bool = field(default=False, init=False)


SectionOutcome = Union[SummarizedSection, FailedSection]


@dataclass
class SummarizationReport:
    """Ordered per-section outcomes of one batch."""
    outcomes: List[SectionOutcome] = field(default_factory=list)
    total_time: float = 0.0
    total_cost: float = 0.0  # Estimated cost in USD

    @property
    def sections(self) -> List[Section]:
        return [outcome.section for outcome in self.outcomes]

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def usage(self) -> TokenUsage:
        total = TokenUsage()
        for outcome in self.outcomes:
            if isinstance(outcome, SummarizedSection):
                total = total + outcome.usage
        return total


@asynccontextmanager
async def _managed_client(
    config: Optional[CompletionConfig],
    client: Optional[BaseCompletionClient]
):
    """Reuse the caller's client if provided, otherwise own one for the batch."""
    if client is not None:
        yield client
        return
    async with OpenAICompletionClient(config or CompletionConfig.from_settings()) as owned_client:
        yield owned_client


async def _summarize_one(
    section: Section,
    subject_name: str,
    client: BaseCompletionClient
) -> SectionOutcome:
    with log_context(section=section.title):
        try:
            response = await generate_summary(section.title, section.content_html, subject_name, client)
            summary = response.content.strip()
        except Exception as e:
            logger.warning(f"Failed to generate summary for '{section.title}': {e}")
            return FailedSection(section=section, reason=str(e) or e.__class__.__name__)

        if not summary:
            logger.warning(f"Failed to generate summary for '{section.title}': completion was empty")
            return FailedSection(section=section, reason="empty summary")

        logger.info(f"Generated summary for '{section.title}'")
        return SummarizedSection(section=section.with_summary(summary), usage=response.usage)


async def iter_summaries(
    sections: List[SectionInput],
    subject_name: str,
    config: Optional[CompletionConfig] = None,
    client: Optional[BaseCompletionClient] = None
) -> AsyncIterator[SectionOutcome]:
    """
    Summarize sections one at a time, yielding each outcome as soon as it is ready.

    A caller that stops or is cancelled keeps every outcome already yielded.
    When no client is given the generator owns one, which is only closed when
    the generator finishes or is closed. Callers that may stop early should
    wrap it in contextlib.aclosing():

        async with aclosing(iter_summaries(sections, name, config)) as outcomes:
            async for outcome in outcomes:
                ...

    Args:
        sections: Sections in display order
        subject_name: Peptide name
        config: Completion settings used when no client is given
        client: Pre-initialized client (caller keeps ownership)

    Yields:
        SummarizedSection or FailedSection, in input order
    """
    validated = coerce_sections(sections)
    if not validated:
        return

    async with _managed_client(config, client) as active_client:
        for section in validated:
            yield await _summarize_one(section, subject_name, active_client)


async def _summarize_concurrently(
    sections: List[Section],
    subject_name: str,
    client: BaseCompletionClient,
    max_concurrency: int
) -> List[SectionOutcome]:
    semaphore = asyncio.Semaphore(max_concurrency)

    async def bounded(section: Section) -> SectionOutcome:
        async with semaphore:
            return await _summarize_one(section, subject_name, client)

    # gather preserves input order
    return list(await asyncio.gather(*(bounded(section) for section in sections)))


@track_operation("plain-language summarization")
async def summarize_all_with_report(
    sections: List[SectionInput],
    subject_name: str,
    config: Optional[CompletionConfig] = None,
    client: Optional[BaseCompletionClient] = None,
    max_concurrency: Optional[int] = None
) -> SummarizationReport:
    """
    Summarize every section and report per-section outcomes.

    Args:
        sections: Sections in display order (all validated before any remote call)
        subject_name: Peptide name
        config: Completion settings used when no client is given
        client: Pre-initialized client (caller keeps ownership)
        max_concurrency: Sections summarized at once (defaults to
            settings.SUMMARY_MAX_CONCURRENCY; 1 = sequential)

    Returns:
        SummarizationReport whose outcomes match the input length and order

    Raises:
        RecordValidationError: If any section is malformed
        ClientConfigurationError: If no client is given and none can be configured
    """
    validated = coerce_sections(sections)
    concurrency = max(1, max_concurrency or settings.SUMMARY_MAX_CONCURRENCY)
    start_time = time.time()

    logger.info(
        f"Generating plain language summaries for {len(validated)} sections of '{subject_name}'"
        + (f" (concurrency {concurrency})" if concurrency > 1 else "")
    )

    report = SummarizationReport()
    with log_context(subject=subject_name, stage=SUMMARY_STAGE):
        if validated:
            if concurrency == 1:
                outcomes = iter_summaries(validated, subject_name, config=config, client=client)
                async with aclosing(outcomes):
                    async for outcome in outcomes:
                        report.outcomes.append(outcome)
            else:
                async with _managed_client(config, client) as active_client:
                    report.outcomes = await _summarize_concurrently(
                        validated, subject_name, active_client, concurrency
                    )

        report.total_time = time.time() - start_time
        report.total_cost = estimate_cost(report.usage)

        logger.info(f"Summarization complete for '{subject_name}':")
        logger.info(f"  - Summarized: {report.succeeded}/{len(validated)} sections")
        logger.info(f"  - Failed: {report.failed}")
        logger.info(f"  - Total time: {report.total_time:.2f}s")
        logger.info(f"  - Estimated cost: ${report.total_cost:.4f}")

    return report


async def summarize_all(
    sections: List[SectionInput],
    subject_name: str,
    config: Optional[CompletionConfig] = None,
    client: Optional[BaseCompletionClient] = None,
    max_concurrency: Optional[int] = None
) -> List[Section]:
    """
    Return the sections with plain-language summaries added where generation succeeded.

    Output has the same length and order as the input; failed sections are
    returned unchanged.
    """
    report = await summarize_all_with_report(
        sections, subject_name, config=config, client=client, max_concurrency=max_concurrency
    )
    return report.sections


async def summarize_record(
    record: Union[Record, Mapping[str, Any]],
    config: Optional[CompletionConfig] = None,
    client: Optional[BaseCompletionClient] = None,
    max_concurrency: Optional[int] = None
) -> Record:
    """Return a new Record whose sections carry plain-language summaries. The input is not modified."""
    record = coerce_record(record)
    sections = await summarize_all(
        record.sections, record.name, config=config, client=client, max_concurrency=max_concurrency
    )
    return record.with_sections(sections)
