"""
Completion engines: prompt in, text out.

Duplicate analysis and classification only need "complete this prompt".
`RemoteCompletionEngine` does that through a hosted API (OpenAI or Claude),
`LocalCompletionEngine` through a local OpenAI-compatible server. Both turn
unsuccessful LLMResponses into the shared error types.
"""

import asyncio
from typing import Callable, Optional

import aiohttp

from shared.errors import (
    LLMError,
    RateLimitedError,
    RemoteAuthError,
    RequestTimeoutError,
)
from shared.logging import get_logger

from .client import LLMClient
from .models import DEFAULT_MODELS, Backend, LLMResponse, LocalModelStatus

log = get_logger("llm", "adapters")

ProgressCallback = Callable[[float, str], None]

BACKEND_LABELS = {
    Backend.OPENAI: "OpenAI",
    Backend.CLAUDE: "Claude",
}


def raise_for_response(response: LLMResponse) -> str:
    """
    Return the text of a successful response, or raise the matching error.

    Raises:
        RemoteAuthError, RateLimitedError, RequestTimeoutError, LLMError
    """
    if response.success:
        return response.text or ""

    backend = response.backend or "LLM"
    message = response.message or response.error or "Unknown error"

    if response.error == "auth_required":
        raise RemoteAuthError(
            f"{backend}: {message}",
            hint="Check the API key for the configured LLM backend.",
        )
    if response.error == "rate_limited":
        raise RateLimitedError(f"{backend}: {message}", retry_after=response.retry_after_seconds)
    if response.error in ("timeout", "connection_failed"):
        raise RequestTimeoutError(f"{backend}: {message}")
    raise LLMError(f"{backend} request failed ({response.error}): {message}")


class CompletionEngine:
    """
    Base class for engines.

    Subclasses set `name` (shown as the model used for an analysis) and
    implement `complete()`.
    """

    name = "unknown"

    def __init__(
        self,
        client: LLMClient,
        *,
        temperature: float = 0.1,
        max_tokens: int = 300,
        timeout_seconds: float = 30,
    ):
        self.client = client
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

    async def initialize(self, progress_callback: Optional[ProgressCallback] = None) -> None:
        """Prepare the engine. Remote engines have nothing to do."""
        if progress_callback is not None:
            progress_callback(1.0, f"{self.name} ready")

    async def complete(self, prompt: str) -> str:
        raise NotImplementedError

    async def close(self):
        await self.client.close()


class RemoteCompletionEngine(CompletionEngine):
    """Completions from a hosted API."""

    def __init__(
        self,
        client: LLMClient,
        backend: str = Backend.OPENAI.value,
        model: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(client, **kwargs)
        self.backend = Backend(backend)
        self.model = model or DEFAULT_MODELS[self.backend]
        self.name = f"{BACKEND_LABELS[self.backend]} {self.model}"

    async def complete(self, prompt: str) -> str:
        response = await self.client.send(
            self.backend.value,
            prompt,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout_seconds=self.timeout_seconds,
        )
        return raise_for_response(response)


class LocalCompletionEngine(CompletionEngine):
    """
    Completions from a local OpenAI-compatible server.

    `initialize()` checks that the server answers and the model is pulled,
    reporting progress through the callback as (fraction, text).
    """

    def __init__(self, client: LLMClient, model: str, **kwargs):
        super().__init__(client, **kwargs)
        self.model = model
        self.name = f"Local ({model})"
        self._ready = False
        self._init_lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._ready

    def _model_listed(self, models: list[str]) -> bool:
        return any(m == self.model or m == f"{self.model}:latest" for m in models)

    async def check_status(self) -> LocalModelStatus:
        """Probe the local server without raising."""
        try:
            models = await self.client.list_local_models()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning("llm.local.unreachable", url=self.client.local_url, error=str(e))
            return LocalModelStatus(server_reachable=False, model_available=False)
        return LocalModelStatus(
            server_reachable=True,
            model_available=self._model_listed(models),
            models=models,
        )

    async def initialize(self, progress_callback: Optional[ProgressCallback] = None) -> None:
        """
        Check the local server and model.

        Raises:
            RequestTimeoutError: If the server cannot be reached
            LLMError: If the model is not available on the server
        """
        def report(progress: float, text: str):
            log.info("llm.local.progress", progress=progress, text=text)
            if progress_callback is not None:
                progress_callback(progress, text)

        report(0.0, f"Connecting to local server at {self.client.local_url}")
        status = await self.check_status()
        if not status.server_reachable:
            raise RequestTimeoutError(
                f"Local inference server at {self.client.local_url} is not reachable",
                hint="Start the local server (e.g. `ollama serve`) or disable local inference.",
            )

        report(0.5, f"Checking model {self.model}")
        if not status.model_available:
            raise LLMError(
                f"Model '{self.model}' is not available on the local server",
                hint=f"Pull it first (e.g. `ollama pull {self.model}`).",
            )

        self._ready = True
        report(1.0, f"{self.name} ready")

    async def complete(self, prompt: str) -> str:
        if not self._ready:
            # Concurrent first calls share one server check
            async with self._init_lock:
                if not self._ready:
                    await self.initialize()
        response = await self.client.send(
            Backend.LOCAL.value,
            prompt,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout_seconds=self.timeout_seconds,
        )
        return raise_for_response(response)


def create_engine(
    client: LLMClient,
    *,
    use_local: bool,
    backend: str = Backend.OPENAI.value,
    model: Optional[str] = None,
    local_model: Optional[str] = None,
    timeout_seconds: float = 30,
) -> CompletionEngine:
    """Build the engine the configuration asks for."""
    if use_local:
        if not local_model:
            raise LLMError("A local model name is required for local inference")
        engine = LocalCompletionEngine(client, local_model, timeout_seconds=timeout_seconds)
    else:
        engine = RemoteCompletionEngine(client, backend, model, timeout_seconds=timeout_seconds)
    log.info("llm.engine.created", engine=engine.name, local=use_local)
    return engine
