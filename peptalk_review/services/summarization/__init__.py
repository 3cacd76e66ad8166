"""Plain-language summarization of record sections."""
from .section_summarizer import summarize_section, build_summary_request, generate_summary
from .batch_runner import (
    SummarizedSection,
    FailedSection,
    SectionOutcome,
    SummarizationReport,
    iter_summaries,
    summarize_all,
    summarize_all_with_report,
    summarize_record,
)

__all__ = [
    'summarize_section',
    'build_summary_request',
    'generate_summary',
    'SummarizedSection',
    'FailedSection',
    'SectionOutcome',
    'SummarizationReport',
    'iter_summaries',
    'summarize_all',
    'summarize_all_with_report',
    'summarize_record',
]
