"""
Shared plumbing for GitHub REST calls: session handling, headers and the
status-code to error mapping used by both the search and create clients.
"""

import asyncio
import time
from typing import Any, Optional

import aiohttp

from shared.errors import (
    RateLimitedError,
    RemoteAuthError,
    RequestTimeoutError,
)
from shared.logging import get_logger

log = get_logger("tracker", "api")

GITHUB_API_VERSION = "2022-11-28"
TOKEN_HINT = "Check GITHUB_TOKEN or github.token in config.yaml."


def retry_after_seconds(headers) -> Optional[int]:
    """Seconds to wait, from Retry-After or X-RateLimit-Reset when present."""
    retry_after = headers.get("Retry-After")
    if retry_after and retry_after.isdigit():
        return int(retry_after)
    reset = headers.get("X-RateLimit-Reset")
    if reset and reset.isdigit():
        return max(0, int(reset) - int(time.time()))
    return None


def is_rate_limited(status: int, headers) -> bool:
    """
    Whether a response is GitHub throttling us.

    A 403 is only a rate limit when the quota is spent or GitHub asks us to
    back off; any other 403 means the token lacks permission.
    """
    if status == 429:
        return True
    if status != 403:
        return False
    return headers.get("X-RateLimit-Remaining") == "0" or bool(headers.get("Retry-After"))


class GitHubAPI:
    """Base class holding the token, session and request helper."""

    def __init__(
        self,
        token: Optional[str],
        base_url: str = "https://api.github.com",
        timeout_seconds: float = 15.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
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

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _headers(self) -> dict:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
        timeout_seconds: Optional[float] = None,
    ) -> tuple[int, Any, Any]:
        """
        Make a request.

        Returns:
            (status, parsed JSON body or text, response headers)

        Raises:
            RequestTimeoutError: On timeout or connection failure
        """
        session = await self._get_http_session()
        timeout = timeout_seconds or self.timeout_seconds
        try:
            async with session.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                params=params,
                json=json,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                if resp.status < 300:
                    body = await resp.json()
                else:
                    body = await resp.text()
                return resp.status, body, resp.headers

        except asyncio.TimeoutError as e:
            log.warning("tracker.request.timeout", method=method, path=path, timeout=timeout)
            raise RequestTimeoutError(
                f"GitHub request timed out after {timeout} seconds"
            ) from e
        except aiohttp.ClientError as e:
            log.warning("tracker.request.failed", method=method, path=path, error=str(e))
            raise RequestTimeoutError(f"Could not reach GitHub: {e}") from e

    @staticmethod
    def _auth_error() -> RemoteAuthError:
        return RemoteAuthError("Invalid GitHub token", hint=TOKEN_HINT)

    @staticmethod
    def _rate_limited(headers, message: str = "GitHub API rate limit exceeded. Please try again later.") -> RateLimitedError:
        return RateLimitedError(message, retry_after=retry_after_seconds(headers))
