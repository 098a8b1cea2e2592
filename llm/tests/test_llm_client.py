"""Tests for LLM client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import anthropic
import pytest

from llm.src.client import LLMClient
from llm.src.models import LLMResponse
from llm.tests.conftest import chat_completion_context, completion_body


class TestLLMClientInit:
    """Tests for LLMClient initialization."""

    def test_default_local_url(self):
        client = LLMClient()
        assert client.local_url == "http://127.0.0.1:11434/v1"

    def test_custom_local_url(self):
        client = LLMClient(local_url="http://gpu-box:8080/v1/")
        assert client.local_url == "http://gpu-box:8080/v1"  # Trailing slash stripped

    def test_keys_never_read_from_environment(self):
        with patch.dict("os.environ", {"OPENAI_API_KEY": "env-key"}):
            client = LLMClient()
        assert not client.has_credentials("openai")

    def test_has_credentials(self):
        client = LLMClient(openai_api_key="sk", anthropic_api_key=None)
        assert client.has_credentials("openai")
        assert not client.has_credentials("claude")
        assert client.has_credentials("local")

    def test_lazy_http_session(self):
        assert LLMClient()._http_session is None


class TestLLMClientHttpSession:

    @pytest.mark.asyncio
    async def test_get_http_session_reuses_session(self):
        client = LLMClient()

        with patch("aiohttp.ClientSession") as mock_session_cls:
            mock_session = MagicMock()
            mock_session.closed = False
            mock_session.close = AsyncMock()
            mock_session_cls.return_value = mock_session

            session1 = await client._get_http_session()
            session2 = await client._get_http_session()

            assert mock_session_cls.call_count == 1
            assert session1 == session2

            await client.close()

        mock_session.close.assert_called_once()
        assert client._http_session is None


class TestSendOpenAI:
    """Tests for OpenAI-compatible chat completions."""

    @pytest.mark.asyncio
    async def test_success(self, mock_http_session):
        client = LLMClient(openai_api_key="sk-test")
        client._http_session = mock_http_session
        mock_http_session.post = MagicMock(return_value=chat_completion_context(json_data=completion_body("Hi")))

        response = await client.send("openai", "Hello", system="Be brief", max_tokens=50, timeout_seconds=5)

        assert response.success
        assert response.text == "Hi"
        assert response.model == "gpt-4"

        call = mock_http_session.post.call_args
        assert call.args[0] == "https://api.openai.com/v1/chat/completions"
        assert call.kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert call.kwargs["json"]["messages"] == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Hello"},
        ]
        assert call.kwargs["json"]["max_tokens"] == 50
        assert call.kwargs["timeout"].total == 5

    @pytest.mark.asyncio
    async def test_missing_key(self, mock_http_session):
        client = LLMClient()
        client._http_session = mock_http_session
        mock_http_session.post = MagicMock()

        response = await client.send("openai", "Hello")

        assert response.error == "auth_required"
        mock_http_session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_401(self, mock_http_session):
        client = LLMClient(openai_api_key="sk-bad")
        client._http_session = mock_http_session
        mock_http_session.post = MagicMock(return_value=chat_completion_context(status=401))

        response = await client.send("openai", "Hello")

        assert not response.success
        assert response.error == "auth_required"

    @pytest.mark.asyncio
    async def test_429(self, mock_http_session):
        client = LLMClient(openai_api_key="sk")
        client._http_session = mock_http_session
        mock_http_session.post = MagicMock(
            return_value=chat_completion_context(status=429, headers={"Retry-After": "20"})
        )

        response = await client.send("openai", "Hello")

        assert response.error == "rate_limited"
        assert response.retry_after_seconds == 20

    @pytest.mark.asyncio
    async def test_api_error_message(self, mock_http_session):
        client = LLMClient(openai_api_key="sk")
        client._http_session = mock_http_session
        mock_http_session.post = MagicMock(return_value=chat_completion_context(
            status=400, json_data={"error": {"message": "model not found"}},
        ))

        response = await client.send("openai", "Hello")

        assert response.error == "api_error"
        assert response.message == "model not found"

    @pytest.mark.asyncio
    async def test_timeout(self, mock_http_session):
        client = LLMClient(openai_api_key="sk")
        client._http_session = mock_http_session
        ctx = MagicMock()
        ctx.__aenter__ = AsyncMock(side_effect=asyncio.TimeoutError())
        ctx.__aexit__ = AsyncMock(return_value=None)
        mock_http_session.post = MagicMock(return_value=ctx)

        response = await client.send("openai", "Hello", timeout_seconds=3)

        assert response.error == "timeout"
        assert "3" in response.message

    @pytest.mark.asyncio
    async def test_unexpected_shape(self, mock_http_session):
        client = LLMClient(openai_api_key="sk")
        client._http_session = mock_http_session
        mock_http_session.post = MagicMock(return_value=chat_completion_context(json_data={"choices": []}))

        response = await client.send("openai", "Hello")

        assert response.error == "api_error"


class TestSendLocal:

    @pytest.mark.asyncio
    async def test_local_requires_model(self):
        response = await LLMClient().send("local", "Hello")
        assert response.error == "model_required"

    @pytest.mark.asyncio
    async def test_local_uses_local_url_without_key(self, mock_http_session):
        client = LLMClient(openai_api_key="sk-should-not-leak")
        client._http_session = mock_http_session
        mock_http_session.post = MagicMock(return_value=chat_completion_context(json_data=completion_body("ok")))

        response = await client.send("local", "Hello", model="llama3.2:3b")

        assert response.success
        call = mock_http_session.post.call_args
        assert call.args[0] == "http://127.0.0.1:11434/v1/chat/completions"
        assert "Authorization" not in call.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_connection_failed(self, mock_http_session):
        client = LLMClient()
        client._http_session = mock_http_session
        ctx = MagicMock()
        ctx.__aenter__ = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))
        ctx.__aexit__ = AsyncMock(return_value=None)
        mock_http_session.post = MagicMock(return_value=ctx)

        response = await client.send("local", "Hello", model="llama3.2:3b")

        assert response.error == "connection_failed"

    @pytest.mark.asyncio
    async def test_list_local_models(self, mock_http_session):
        client = LLMClient()
        client._http_session = mock_http_session
        mock_http_session.get = MagicMock(return_value=chat_completion_context(
            json_data={"data": [{"id": "llama3.2:3b"}, {"id": "mistral"}]},
        ))

        assert await client.list_local_models() == ["llama3.2:3b", "mistral"]


class TestSendClaude:
    """Tests for the Anthropic SDK path."""

    @pytest.mark.asyncio
    async def test_success(self, mock_anthropic_client):
        client = LLMClient(anthropic_api_key="ak")
        client._anthropic_client = mock_anthropic_client

        response = await client.send("claude", "Hello", system="Be brief", temperature=0.3)

        assert response.success
        assert response.text == "Claude response"
        kwargs = mock_anthropic_client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Be brief"
        assert kwargs["model"] == "claude-sonnet-4-20250514"
        assert kwargs["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_missing_key(self):
        response = await LLMClient().send("claude", "Hello")
        assert response.error == "auth_required"

    @pytest.mark.asyncio
    async def test_authentication_error(self, mock_anthropic_client):
        client = LLMClient(anthropic_api_key="ak")
        client._anthropic_client = mock_anthropic_client
        mock_anthropic_client.messages.create.side_effect = anthropic.AuthenticationError(
            "invalid x-api-key", response=MagicMock(status_code=401), body=None,
        )

        response = await client.send("claude", "Hello")

        assert response.error == "auth_required"

    @pytest.mark.asyncio
    async def test_rate_limit_error(self, mock_anthropic_client):
        client = LLMClient(anthropic_api_key="ak")
        client._anthropic_client = mock_anthropic_client
        mock_anthropic_client.messages.create.side_effect = anthropic.RateLimitError(
            "rate limited", response=MagicMock(status_code=429), body=None,
        )

        response = await client.send("claude", "Hello")

        assert response.error == "rate_limited"
        assert response.retry_after_seconds == 60


class TestSendRouting:

    @pytest.mark.asyncio
    async def test_unknown_backend(self):
        response = await LLMClient().send("gemini", "Hello")
        assert response.error == "unknown_backend"

    @pytest.mark.asyncio
    async def test_backend_name_case_insensitive(self):
        client = LLMClient(anthropic_api_key="ak")
        expected = LLMResponse(success=True, text="ok", backend="claude")

        with patch.object(client, "_send_to_claude", AsyncMock(return_value=expected)) as mock_api:
            response = await client.send("Claude", "Hello")

        mock_api.assert_awaited_once()
        assert response is expected
