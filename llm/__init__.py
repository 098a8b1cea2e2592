"""
LLM access for triage.

- LLMClient: one client for OpenAI, Claude and a local OpenAI-compatible server
- CompletionEngine: prompt-in/text-out judges (remote or local)
- BugClassifier: bug detection and issue drafting

Usage:
    from llm import LLMClient, create_engine

    client = LLMClient(openai_api_key="sk-...")
    engine = create_engine(client, use_local=False, backend="openai")
    text = await engine.complete("...")
"""

from .src.adapters import (
    CompletionEngine,
    LocalCompletionEngine,
    RemoteCompletionEngine,
    create_engine,
    raise_for_response,
)
from .src.classifier import BugClassifier
from .src.client import LLMClient
from .src.models import (
    Backend,
    BugDetectionResult,
    InitialAnalysis,
    IssueDraft,
    LLMResponse,
    LocalModelStatus,
)

__all__ = [
    "CompletionEngine",
    "LocalCompletionEngine",
    "RemoteCompletionEngine",
    "create_engine",
    "raise_for_response",
    "BugClassifier",
    "LLMClient",
    "Backend",
    "BugDetectionResult",
    "InitialAnalysis",
    "IssueDraft",
    "LLMResponse",
    "LocalModelStatus",
]
