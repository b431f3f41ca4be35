"""
HTTP upstream client.

Builds `operation(credential)` coroutines for the retry dispatcher on top of
a pooled httpx AsyncClient. The credential's secret is sent in the
configured API-key header and never logged; HTTP failures are mapped to the
Upstream* exceptions with status, headers and Retry-After carried along.
"""

import json
import time
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog
from pydantic import BaseModel, Field

from quota_rotator.config import Settings
from quota_rotator.models.credential_models import Credential
from quota_rotator.upstream.exceptions import (
    UpstreamConnectionError,
    UpstreamError,
    UpstreamTimeoutError,
)

logger = structlog.get_logger(__name__)


class UpstreamResponse(BaseModel):
    """Decoded JSON response of one upstream call."""

    status_code: int
    data: dict[str, Any] = Field(default_factory=dict)
    usage_tokens: Optional[int] = None
    latency_ms: int = Field(default=0, ge=0)


def extract_usage_tokens(data: dict[str, Any]) -> Optional[int]:
    """
    Total tokens reported by the upstream, if any.

    Understands Gemini (`usageMetadata.totalTokenCount`) and OpenAI-style
    (`usage.total_tokens`) payloads.
    """
    gemini = data.get("usageMetadata")
    if isinstance(gemini, dict) and isinstance(gemini.get("totalTokenCount"), int):
        return gemini["totalTokenCount"]

    usage = data.get("usage")
    if isinstance(usage, dict):
        if isinstance(usage.get("total_tokens"), int):
            return usage["total_tokens"]
        prompt = usage.get("prompt_tokens")
        completion = usage.get("completion_tokens")
        if isinstance(prompt, int) and isinstance(completion, int):
            return prompt + completion
    return None


def _retry_after_header(headers: httpx.Headers) -> Optional[float]:
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        # HTTP-date form; the classifier parses it from the headers
        return None


class HttpUpstreamClient:
    """
    Pooled httpx client producing dispatcher operations.

    Features:
    - Connection pooling via persistent AsyncClient
    - Secret injected per call from the selected credential
    - Status/transport errors mapped to Upstream* exceptions
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60,
        api_key_header: str = "x-goog-api-key",
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize upstream client.

        Args:
            base_url: Upstream API root URL
            timeout: Request timeout in seconds
            api_key_header: Header carrying the credential secret
            connection_limits: httpx connection pool limits (default: 20 max connections)
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key_header = api_key_header

        if connection_limits is None:
            connection_limits = httpx.Limits(
                max_keepalive_connections=10,
                max_connections=20,
                keepalive_expiry=30.0,
            )
        self._connection_limits = connection_limits
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Upstream client initialized",
            base_url=self.base_url,
            timeout=timeout,
            api_key_header=api_key_header,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpUpstreamClient":
        return cls(
            base_url=settings.UPSTREAM_BASE_URL,
            timeout=settings.UPSTREAM_TIMEOUT,
            api_key_header=settings.UPSTREAM_API_KEY_HEADER,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                transport=self._transport,
                follow_redirects=True,
            )
            logger.debug("Created new httpx AsyncClient")
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "HttpUpstreamClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def operation(
        self, path: str, payload: dict[str, Any]
    ) -> Callable[[Credential], Awaitable[UpstreamResponse]]:
        """
        Build an operation that POSTs `payload` to `path` with a credential.

        Returns:
            Coroutine function suitable for RetryDispatcher.execute
        """

        async def call(credential: Credential) -> UpstreamResponse:
            return await self.post(path, payload, credential)

        return call

    async def post(self, path: str, payload: dict[str, Any], credential: Credential) -> UpstreamResponse:
        """
        POST JSON to the upstream using `credential`.

        Raises:
            UpstreamTimeoutError: Request timed out
            UpstreamConnectionError: Transport-level failure
            UpstreamError: Any error status (rate limits included, with
                status, headers and Retry-After for the classifier) or an
                undecodable body
        """
        start_time = time.time()
        headers = {self.api_key_header: credential.secret.get_secret_value()}

        try:
            client = await self._get_client()
            response = await client.post(path, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning(
                "Upstream request timeout",
                path=path,
                credential_id=credential.id,
                timeout=self.timeout,
            )
            raise UpstreamTimeoutError(
                f"Request timeout after {self.timeout}s",
                details={"path": path, "error_type": type(e).__name__},
            ) from e
        except httpx.TransportError as e:
            logger.warning(
                "Upstream network error",
                path=path,
                credential_id=credential.id,
                error=str(e),
            )
            raise UpstreamConnectionError(
                f"Network error: {e}",
                details={"path": path, "error_type": type(e).__name__},
            ) from e

        latency_ms = int((time.time() - start_time) * 1000)

        if response.status_code >= 400:
            self._raise_for_status(response, path, credential)

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise UpstreamError(
                "Invalid JSON response from upstream",
                status_code=response.status_code,
                headers=response.headers,
                details={"path": path, "parse_error": str(e)},
            ) from e
        if not isinstance(data, dict):
            data = {"result": data}

        usage_tokens = extract_usage_tokens(data)
        logger.debug(
            "Upstream call successful",
            path=path,
            credential_id=credential.id,
            status_code=response.status_code,
            latency_ms=latency_ms,
            usage_tokens=usage_tokens,
        )
        return UpstreamResponse(
            status_code=response.status_code,
            data=data,
            usage_tokens=usage_tokens,
            latency_ms=latency_ms,
        )

    def _raise_for_status(self, response: httpx.Response, path: str, credential: Credential) -> None:
        status_code = response.status_code
        # Error bodies can be large; keep a prefix for logs only
        error_text = response.text[:500]
        # Rate limit or fatal is decided by RateLimitClassifier from the status

        logger.warning(
            "Upstream HTTP error",
            path=path,
            credential_id=credential.id,
            status_code=status_code,
            error_text=error_text,
        )
        raise UpstreamError(
            f"Upstream error: {status_code} {error_text}",
            status_code=status_code,
            headers=response.headers,
            retry_after=_retry_after_header(response.headers),
            details={"path": path, "error": error_text},
        )
