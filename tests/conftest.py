"""
Shared fixtures: sample records and a scripted completion client.
"""
import json
from typing import List, Union

import pytest

from peptalk_review.models import CompletionConfig, CompletionRequest, CompletionResponse, Record, TokenUsage
from peptalk_review.services.clients import BaseCompletionClient


class FakeCompletionClient(BaseCompletionClient):
    """Completion client that replays scripted responses and records requests.

    Each scripted item is either a string (returned as content), a dict
    (returned as JSON content) or an exception instance (raised).
    """

    def __init__(self, responses: List[Union[str, dict, Exception]] = None):
        self.responses = list(responses or [])
        self.requests: List[CompletionRequest] = []
        super().__init__(CompletionConfig(api_key="test-key", model="test-model"))

    def _validate_credentials(self) -> None:
        pass

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("FakeCompletionClient ran out of scripted responses")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, dict):
            item = json.dumps(item)
        return CompletionResponse(content=item, usage=TokenUsage(input_tokens=100, output_tokens=20))


@pytest.fixture
def fake_client_factory():
    return FakeCompletionClient


@pytest.fixture
def completion_config():
    return CompletionConfig(api_key="test-key", model="test-model")


@pytest.fixture
def clean_record() -> Record:
    return Record(
        name="BPC-157",
        summary_html="<p>BPC-157 is a synthetic peptide studied mainly in rodents.</p>",
        sections=[
            {
                "title": "Animal Research",
                "contentHtml": "<p>Rodent studies report faster tendon healing [PMID:123456].</p>",
            },
            {
                "title": "Legal Status",
                "contentHtml": "<p>BPC-157 is not approved for human use in the United States.</p>",
            },
        ],
    )
