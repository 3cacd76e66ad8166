"""
Tests for the section summarizer and the batch runner.
"""
import asyncio
from contextlib import aclosing

import pytest
from unittest.mock import AsyncMock, patch

from peptalk_review.core.error_handling import (
    CompletionRateLimitError,
    CompletionServiceError,
    RecordValidationError,
)
from peptalk_review.core.logging import log_context_var
from peptalk_review.models import Record, Section
from peptalk_review.services.summarization import (
    FailedSection,
    SummarizedSection,
    build_summary_request,
    iter_summaries,
    summarize_all,
    summarize_all_with_report,
    summarize_record,
    summarize_section,
)


def make_sections(count: int):
    return [
        Section(title=f"Section {i}", content_html=f"<p>Technical finding number {i}.</p>")
        for i in range(count)
    ]


# ========== Section Summarizer ==========

def test_request_strips_markup_and_collapses_whitespace():
    request = build_summary_request(
        "Mechanisms",
        "<h2>How it works</h2>\n<p>Binds   <em>receptor</em> sites.</p>",
        "BPC-157",
    )
    assert "How it works Binds receptor sites." in request.user_prompt
    assert "<" not in request.user_prompt.split("Technical Content:")[1]
    assert 'Section Title: "Mechanisms"' in request.user_prompt
    assert "Peptide: BPC-157" in request.user_prompt
    assert request.json_response is False
    assert "ONLY the plain language summary" in request.system_prompt


def test_request_truncates_after_stripping():
    body = "<b>" + ("a" * 4000) + "</b>"
    request = build_summary_request("Long", body, "BPC-157")
    content = request.user_prompt.split("Technical Content:\n")[1].split("\n\nTask:")[0]
    assert content == "a" * 3000 + "..."


def test_short_content_is_not_truncated():
    request = build_summary_request("Short", "<p>" + "a" * 3000 + "</p>", "BPC-157")
    content = request.user_prompt.split("Technical Content:\n")[1].split("\n\nTask:")[0]
    assert content == "a" * 3000


def test_markup_only_content_is_rejected():
    with pytest.raises(RecordValidationError):
        build_summary_request("Empty", "<p> </p><br/>", "BPC-157")


@pytest.mark.asyncio
async def test_summarize_section_returns_trimmed_text(fake_client_factory):
    client = fake_client_factory(["  Scientists saw faster healing in rats.  \n"])

    summary = await summarize_section("Animal Research", "<p>Studies show X.</p>", "BPC-157", client=client)

    assert summary == "Scientists saw faster healing in rats."
    assert client.requests[0].max_tokens == 200
    assert client.requests[0].temperature == 0.5


@pytest.mark.asyncio
async def test_summarize_section_propagates_remote_errors(fake_client_factory):
    client = fake_client_factory([CompletionServiceError("connection reset")])

    with pytest.raises(CompletionServiceError):
        await summarize_section("Animal Research", "<p>Studies show X.</p>", "BPC-157", client=client)


# ========== Batch Runner ==========

@pytest.mark.asyncio
async def test_all_sections_summarized_in_order(fake_client_factory):
    sections = make_sections(3)
    client = fake_client_factory(["Summary 0", "Summary 1", "Summary 2"])

    result = await summarize_all(sections, "BPC-157", client=client)

    assert [s.title for s in result] == ["Section 0", "Section 1", "Section 2"]
    assert [s.plain_language_summary for s in result] == ["Summary 0", "Summary 1", "Summary 2"]
    assert all(s.plain_language_summary is None for s in sections)


@pytest.mark.asyncio
async def test_failed_section_is_passed_through_unchanged(fake_client_factory):
    sections = [
        Section(title="First", content_html="<p>Studies show X.</p>"),
        Section(title="Second", content_html="<p>Studies show Y.</p>"),
        Section(title="Third", content_html="<p>Studies show Z.</p>"),
    ]
    client = fake_client_factory(["One", CompletionServiceError("transport error"), "Three"])

    result = await summarize_all(sections, "BPC-157", client=client)

    assert len(result) == 3
    assert result[1] == sections[1]
    assert result[1].plain_language_summary is None
    assert result[0].plain_language_summary == "One"
    assert result[2].plain_language_summary == "Three"
    assert len(client.requests) == 3


@pytest.mark.asyncio
async def test_failure_is_logged_with_section_title(fake_client_factory, caplog):
    sections = [Section(title="Safety & Side Effects", content_html="<p>Studies show X.</p>")]
    client = fake_client_factory([CompletionRateLimitError("429")])

    with caplog.at_level("WARNING", logger="peptalk_review.services.summarization.batch_runner"):
        result = await summarize_all(sections, "BPC-157", client=client)

    assert result == sections
    assert "Safety & Side Effects" in caplog.text


@pytest.mark.asyncio
async def test_markup_only_section_fails_in_isolation(fake_client_factory):
    sections = [
        Section(title="Empty", content_html="<div></div>"),
        Section(title="Real", content_html="<p>Studies show X.</p>"),
    ]
    client = fake_client_factory(["Real summary"])

    report = await summarize_all_with_report(sections, "BPC-157", client=client)

    assert isinstance(report.outcomes[0], FailedSection)
    assert report.outcomes[0].section is sections[0]
    assert isinstance(report.outcomes[1], SummarizedSection)
    assert report.succeeded == 1
    assert report.failed == 1
    assert len(client.requests) == 1


@pytest.mark.asyncio
async def test_empty_completion_counts_as_failure(fake_client_factory):
    sections = make_sections(1)
    client = fake_client_factory(["   "])

    report = await summarize_all_with_report(sections, "BPC-157", client=client)

    assert report.failed == 1
    assert report.sections == sections


@pytest.mark.asyncio
async def test_report_accumulates_usage_and_cost(fake_client_factory):
    client = fake_client_factory(["A", "B"])

    report = await summarize_all_with_report(make_sections(2), "BPC-157", client=client)

    assert report.usage.input_tokens == 200
    assert report.usage.output_tokens == 40
    assert report.total_cost > 0


@pytest.mark.asyncio
async def test_empty_batch(fake_client_factory):
    client = fake_client_factory([])
    assert await summarize_all([], "BPC-157", client=client) == []


@pytest.mark.asyncio
async def test_malformed_section_rejects_batch_before_remote_calls(fake_client_factory):
    client = fake_client_factory(["unused"])

    with pytest.raises(RecordValidationError):
        await summarize_all([{"title": "No content"}], "BPC-157", client=client)
    assert client.requests == []


@pytest.mark.asyncio
async def test_sequential_processing_waits_for_each_call(fake_client_factory):
    in_flight = 0
    max_in_flight = 0
    client = fake_client_factory(["A", "B", "C"])
    original_complete = client.complete

    async def tracking_complete(request):
        nonlocal in_flight, max_in_flight
        in_flight += 1
        max_in_flight = max(max_in_flight, in_flight)
        await asyncio.sleep(0)
        try:
            return await original_complete(request)
        finally:
            in_flight -= 1

    client.complete = tracking_complete

    await summarize_all(make_sections(3), "BPC-157", client=client, max_concurrency=1)

    assert max_in_flight == 1


@pytest.mark.asyncio
async def test_concurrent_fan_out_preserves_order_and_isolation(fake_client_factory):
    client = fake_client_factory([])

    async def slow_complete(request):
        # Later sections finish first
        index = int(request.user_prompt.split("Technical finding number ")[1][0])
        await asyncio.sleep(0.01 * (5 - index))
        if index == 2:
            raise CompletionServiceError("boom")
        from peptalk_review.models import CompletionResponse
        return CompletionResponse(content=f"Summary {index}")

    client.complete = slow_complete
    sections = make_sections(5)

    result = await summarize_all(sections, "BPC-157", client=client, max_concurrency=3)

    assert [s.title for s in result] == [s.title for s in sections]
    assert result[2] == sections[2]
    assert [s.plain_language_summary for s in result] == [
        "Summary 0", "Summary 1", None, "Summary 3", "Summary 4"
    ]


@pytest.mark.asyncio
async def test_iter_summaries_keeps_completed_outcomes(fake_client_factory):
    client = fake_client_factory(["A", "B", "C"])
    received = []

    async for outcome in iter_summaries(make_sections(3), "BPC-157", client=client):
        received.append(outcome)
        if len(received) == 2:
            break

    assert [o.section.plain_language_summary for o in received] == ["A", "B"]
    assert len(client.requests) == 2


@pytest.mark.asyncio
async def test_cancellation_is_not_swallowed(fake_client_factory):
    client = fake_client_factory([])
    started = asyncio.Event()

    async def hanging_complete(request):
        started.set()
        await asyncio.sleep(10)

    client.complete = hanging_complete
    task = asyncio.create_task(summarize_all(make_sections(2), "BPC-157", client=client))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_summarize_record_returns_new_record(clean_record, fake_client_factory):
    client = fake_client_factory(["Rats healed faster.", "It is not approved for people."])

    updated = await summarize_record(clean_record, client=client)

    assert isinstance(updated, Record)
    assert updated is not clean_record
    assert updated.name == clean_record.name
    assert [s.plain_language_summary for s in updated.sections] == [
        "Rats healed faster.", "It is not approved for people."
    ]
    assert all(s.plain_language_summary is None for s in clean_record.sections)


@pytest.mark.asyncio
async def test_batch_owns_one_client_when_none_given(completion_config, fake_client_factory):
    fake = fake_client_factory(["A", "B"])

    with patch(
        "peptalk_review.services.summarization.batch_runner.OpenAICompletionClient",
        return_value=fake
    ) as client_cls:
        result = await summarize_all(make_sections(2), "BPC-157", config=completion_config)

    client_cls.assert_called_once_with(completion_config)
    assert [s.plain_language_summary for s in result] == ["A", "B"]


@pytest.mark.asyncio
async def test_closing_iterator_early_closes_owned_client(completion_config, fake_client_factory):
    fake = fake_client_factory(["A", "B", "C"])
    fake.close = AsyncMock()

    with patch(
        "peptalk_review.services.summarization.batch_runner.OpenAICompletionClient",
        return_value=fake
    ):
        outcomes = iter_summaries(make_sections(3), "BPC-157", config=completion_config)
        async with aclosing(outcomes):
            async for outcome in outcomes:
                break
        fake.close.assert_awaited_once()

    assert len(fake.requests) == 1


@pytest.mark.asyncio
async def test_summaries_run_inside_review_log_context(fake_client_factory):
    client = fake_client_factory([])
    seen = []

    async def recording_complete(request):
        seen.append(dict(log_context_var.get() or {}))
        from peptalk_review.models import CompletionResponse
        return CompletionResponse(content="Summary")

    client.complete = recording_complete

    await summarize_all(make_sections(2), "BPC-157", client=client)

    assert seen == [
        {"subject": "BPC-157", "stage": "summary", "section": "Section 0"},
        {"subject": "BPC-157", "stage": "summary", "section": "Section 1"},
    ]
    assert not log_context_var.get()
