"""
LLM Client - Unified interface for LLM access.

Routes requests to:
- OpenAI → chat completions API over HTTP
- Claude → Anthropic SDK
- Local → an OpenAI-compatible server (e.g. Ollama) on this machine

Failures are returned as unsuccessful `LLMResponse`s, never raised, so
callers decide what an error means for them.
"""

import asyncio
import time
from typing import Optional

import aiohttp
import anthropic

from shared.logging import get_logger

from .models import DEFAULT_MODELS, Backend, LLMResponse

log = get_logger("llm", "client")

OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LOCAL_URL = "http://127.0.0.1:11434/v1"


class LLMClient:
    """
    Unified client for LLM access.

    Keys are passed in explicitly; the client never reads the environment.

    Usage:
        client = LLMClient(openai_api_key="sk-...")
        response = await client.send("openai", "Hello!")
        if response.success:
            print(response.text)
    """

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        local_url: str = DEFAULT_LOCAL_URL,
        openai_base_url: str = OPENAI_BASE_URL,
    ):
        """
        Initialize the client.

        Args:
            openai_api_key: API key for OpenAI
            anthropic_api_key: API key for Claude
            local_url: Base URL of the local OpenAI-compatible server
            openai_base_url: Base URL for the OpenAI API
        """
        self._openai_key = openai_api_key
        self._anthropic_key = anthropic_api_key
        self.local_url = local_url.rstrip("/")
        self.openai_base_url = openai_base_url.rstrip("/")
        self._http_session: Optional[aiohttp.ClientSession] = None

        # Lazy-loaded API clients
        self._anthropic_client = None

    async def _get_http_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for API calls."""
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    def _get_anthropic_client(self):
        """Get or create Anthropic client."""
        if self._anthropic_client is None and self._anthropic_key:
            self._anthropic_client = anthropic.Anthropic(api_key=self._anthropic_key)
        return self._anthropic_client

    async def close(self):
        """Close HTTP session."""
        if self._http_session and not self._http_session.closed:
            await self._http_session.close()
            self._http_session = None

    def has_credentials(self, backend: str) -> bool:
        """Whether a request to this backend could be authorized."""
        if backend == Backend.OPENAI:
            return bool(self._openai_key)
        if backend == Backend.CLAUDE:
            return bool(self._anthropic_key)
        return backend == Backend.LOCAL

    # --- OpenAI-compatible chat completions (OpenAI and local) ---

    async def _send_chat_completion(
        self,
        backend: str,
        base_url: str,
        api_key: Optional[str],
        messages: list[dict],
        model: str,
        temperature: float,
        max_tokens: int,
        timeout_seconds: float,
    ) -> LLMResponse:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        start_time = time.time()

        try:
            session = await self._get_http_session()
            async with session.post(
                f"{base_url}/chat/completions",
                headers=headers,
                json={
                    "model": model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                timeout=aiohttp.ClientTimeout(total=timeout_seconds),
            ) as resp:
                if resp.status == 401:
                    return LLMResponse(
                        success=False,
                        error="auth_required",
                        message=f"Invalid {backend} API key",
                        backend=backend,
                    )
                if resp.status == 429:
                    retry_after = resp.headers.get("Retry-After")
                    return LLMResponse(
                        success=False,
                        error="rate_limited",
                        message=f"{backend} rate limit exceeded. Please try again in a moment.",
                        backend=backend,
                        retry_after_seconds=int(retry_after) if retry_after and retry_after.isdigit() else None,
                    )

                data = await resp.json(content_type=None)

                if resp.status != 200:
                    error = data.get("error") if isinstance(data, dict) else None
                    message = error.get("message") if isinstance(error, dict) else str(error or data)
                    return LLMResponse(
                        success=False,
                        error="api_error",
                        message=message,
                        backend=backend,
                    )

                elapsed = time.time() - start_time
                text = data["choices"][0]["message"]["content"]

                return LLMResponse(
                    success=True,
                    text=text,
                    backend=backend,
                    model=model,
                    response_time_seconds=elapsed,
                )

        except asyncio.TimeoutError:
            return LLMResponse(
                success=False,
                error="timeout",
                message=f"Request timed out after {timeout_seconds} seconds",
                backend=backend,
            )
        except aiohttp.ClientError as e:
            log.error("llm.request.connection_failed", backend=backend, error=str(e))
            return LLMResponse(
                success=False,
                error="connection_failed",
                message=str(e),
                backend=backend,
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            return LLMResponse(
                success=False,
                error="api_error",
                message=f"Unexpected response shape: {e}",
                backend=backend,
            )

    async def _send_to_openai(self, messages, model, temperature, max_tokens, timeout_seconds) -> LLMResponse:
        if not self._openai_key:
            return LLMResponse(
                success=False,
                error="auth_required",
                message="OPENAI_API_KEY not configured",
                backend=Backend.OPENAI.value,
            )
        return await self._send_chat_completion(
            Backend.OPENAI.value, self.openai_base_url, self._openai_key,
            messages, model, temperature, max_tokens, timeout_seconds,
        )

    async def _send_to_local(self, messages, model, temperature, max_tokens, timeout_seconds) -> LLMResponse:
        return await self._send_chat_completion(
            Backend.LOCAL.value, self.local_url, None,
            messages, model, temperature, max_tokens, timeout_seconds,
        )

    # --- Claude ---

    async def _send_to_claude(
        self,
        prompt: str,
        system: Optional[str],
        model: str,
        temperature: float,
        max_tokens: int,
        timeout_seconds: float,
    ) -> LLMResponse:
        """Send request directly to Claude API."""
        client = self._get_anthropic_client()
        if not client:
            return LLMResponse(
                success=False,
                error="auth_required",
                message="ANTHROPIC_API_KEY not configured",
                backend=Backend.CLAUDE.value,
            )

        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": timeout_seconds,
        }
        if system:
            kwargs["system"] = system

        start_time = time.time()

        try:
            # Run sync API call in thread pool
            response = await asyncio.to_thread(client.messages.create, **kwargs)
        except anthropic.AuthenticationError as e:
            return LLMResponse(success=False, error="auth_required", message=str(e), backend="claude")
        except anthropic.RateLimitError as e:
            return LLMResponse(
                success=False,
                error="rate_limited",
                message=str(e),
                backend="claude",
                retry_after_seconds=60,
            )
        except anthropic.APITimeoutError as e:
            return LLMResponse(success=False, error="timeout", message=str(e), backend="claude")
        except anthropic.APIError as e:
            return LLMResponse(success=False, error="api_error", message=str(e), backend="claude")

        elapsed = time.time() - start_time
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return LLMResponse(
            success=True,
            text=text,
            backend="claude",
            model=model,
            response_time_seconds=elapsed,
        )

    # --- Unified Send Method ---

    async def send(
        self,
        backend: str,
        prompt: str,
        *,
        system: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 1000,
        timeout_seconds: float = 30,
    ) -> LLMResponse:
        """
        Send a prompt to an LLM backend.

        Args:
            backend: Which LLM ("openai", "claude", "local")
            prompt: The user prompt
            system: Optional system prompt
            model: Specific model (defaults per backend; required for local)
            temperature: Sampling temperature
            max_tokens: Reply length cap
            timeout_seconds: Request timeout

        Returns:
            LLMResponse with the result
        """
        backend = backend.lower()

        log.debug(
            "llm.request.sending",
            backend=backend,
            model=model,
            prompt_length=len(prompt),
        )

        if backend == Backend.CLAUDE:
            response = await self._send_to_claude(
                prompt, system,
                model or DEFAULT_MODELS[Backend.CLAUDE],
                temperature, max_tokens, timeout_seconds,
            )
        elif backend in (Backend.OPENAI, Backend.LOCAL):
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})

            if backend == Backend.OPENAI:
                response = await self._send_to_openai(
                    messages, model or DEFAULT_MODELS[Backend.OPENAI],
                    temperature, max_tokens, timeout_seconds,
                )
            else:
                if not model:
                    return LLMResponse(
                        success=False,
                        error="model_required",
                        message="A model name is required for local inference",
                        backend=backend,
                    )
                response = await self._send_to_local(
                    messages, model, temperature, max_tokens, timeout_seconds,
                )
        else:
            return LLMResponse(
                success=False,
                error="unknown_backend",
                message=f"Unknown backend: {backend}",
            )

        if response.success:
            log.info(
                "llm.request.complete",
                backend=backend,
                model=response.model,
                response_length=len(response.text or ""),
                time_s=round(response.response_time_seconds, 2),
            )
        else:
            log.warning(
                "llm.request.failed",
                backend=backend,
                error=response.error,
                message=response.message,
            )
        return response

    # --- Local server ---

    async def list_local_models(self, timeout_seconds: float = 5) -> list[str]:
        """
        Models the local server can serve.

        Raises:
            aiohttp.ClientError, asyncio.TimeoutError: If the server is unreachable
        """
        session = await self._get_http_session()
        async with session.get(
            f"{self.local_url}/models",
            timeout=aiohttp.ClientTimeout(total=timeout_seconds),
        ) as resp:
            if resp.status != 200:
                raise aiohttp.ClientResponseError(
                    resp.request_info, resp.history, status=resp.status,
                    message=f"Local server returned status {resp.status}",
                )
            data = await resp.json(content_type=None)
        return [m.get("id", "") for m in data.get("data", []) if isinstance(m, dict)]
