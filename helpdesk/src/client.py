"""
Intercom client.

Fetches conversations over the Intercom REST API. Conversation ids are
validated before any request is made; HTTP failures are mapped onto the
shared error taxonomy, and rate-limit/timeout failures are retried with
exponential backoff.
"""

import asyncio
import re
from typing import Optional

import aiohttp
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.errors import (
    InputValidationError,
    MalformedInputError,
    NotFoundError,
    RateLimitedError,
    RemoteAuthError,
    RequestTimeoutError,
    TriageError,
)
from shared.logging import get_logger

from .models import Conversation
from .normalizer import normalize_conversation

log = get_logger("helpdesk", "client")

INTERCOM_API_VERSION = "2.10"
CONVERSATION_ID_PATTERN = re.compile(r"^\d+$")


def validate_conversation_id(conversation_id: str) -> bool:
    """Conversation ids are purely numeric (surrounding whitespace allowed)."""
    return bool(CONVERSATION_ID_PATTERN.match((conversation_id or "").strip()))


class IntercomClient:
    """
    Client for the Intercom conversations API.

    Usage:
        client = IntercomClient(token="...")
        conversation = await client.get_conversation("12345")
        await client.close()
    """

    def __init__(
        self,
        token: Optional[str],
        base_url: str = "https://api.intercom.io",
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the client.

        Args:
            token: Intercom access token
            base_url: API base URL
            timeout_seconds: Per-request timeout
            max_attempts: Attempts for retryable failures (1 = no retry)
            session: Existing session to use (the client will not close it)
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self._http_session = session
        self._owns_session = session is None

    async def _get_http_session(self) -> aiohttp.ClientSession:
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession()
            self._owns_session = True
        return self._http_session

    async def close(self):
        """Close HTTP session."""
        if self._owns_session and self._http_session and not self._http_session.closed:
            await self._http_session.close()
            self._http_session = None

    async def __aenter__(self) -> "IntercomClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _headers(self) -> dict:
        headers = {
            "Intercom-Version": INTERCOM_API_VERSION,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request_conversation(self, conversation_id: str) -> dict:
        session = await self._get_http_session()
        try:
            async with session.get(
                f"{self.base_url}/conversations/{conversation_id}",
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as resp:
                if resp.status == 401:
                    raise RemoteAuthError(
                        "Invalid Intercom access token",
                        hint="Check INTERCOM_ACCESS_TOKEN or intercom.token in config.yaml.",
                    )
                if resp.status == 404:
                    raise NotFoundError(
                        f"Conversation {conversation_id} not found. Please check the conversation ID."
                    )
                if resp.status == 429:
                    retry_after = resp.headers.get("Retry-After")
                    raise RateLimitedError(
                        "Intercom rate limit exceeded. Please try again in a few moments.",
                        retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                    )
                if resp.status >= 400:
                    text = await resp.text()
                    raise TriageError(f"Intercom returned status {resp.status}: {text[:200]}")

                data = await resp.json()

        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"Intercom request timed out after {self.timeout_seconds} seconds"
            ) from e
        except aiohttp.ClientError as e:
            raise RequestTimeoutError(f"Could not reach Intercom: {e}") from e

        if not isinstance(data, dict):
            raise MalformedInputError("Intercom returned a non-object conversation payload")
        return data

    async def fetch_conversation(self, conversation_id: str) -> dict:
        """
        Fetch the raw conversation payload.

        Raises:
            InputValidationError: If the id is not numeric (no request is made)
            RemoteAuthError, NotFoundError, RateLimitedError, RequestTimeoutError
        """
        if not validate_conversation_id(conversation_id):
            raise InputValidationError(
                "Conversation ID must be a numeric value",
                hint="Copy the number at the end of the Intercom conversation URL.",
            )
        conversation_id = conversation_id.strip()

        log.info("helpdesk.conversation.fetching", conversation_id=conversation_id)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((RateLimitedError, RequestTimeoutError)),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    log.warning(
                        "helpdesk.conversation.retrying",
                        conversation_id=conversation_id,
                        attempt=attempt.retry_state.attempt_number,
                    )
                data = await self._request_conversation(conversation_id)

        log.info("helpdesk.conversation.fetched", conversation_id=data.get("id", conversation_id))
        return data

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """Fetch and normalize a conversation."""
        return normalize_conversation(await self.fetch_conversation(conversation_id))
