"""
Completion-service clients.

This package provides the base class and the OpenAI implementation used by the
semantic reviewer and the section summarizer.
"""
from .base_client import BaseCompletionClient, estimate_cost
from .openai_client import OpenAICompletionClient

__all__ = ["BaseCompletionClient", "OpenAICompletionClient", "estimate_cost"]
