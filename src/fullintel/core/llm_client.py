"""
Resilient multi-provider LLM client.

``ResilientClient`` owns one rate limiter and one circuit breaker per
provider family, detects the provider from the model identifier and routes
the request through the matching adapter.

Example:
    from fullintel.core.llm_client import ResilientClient
    from fullintel.core.llm_provider import ConversationRequest

    async with ResilientClient(api_key="sk-ant-...") as client:
        request = ConversationRequest.simple(
            "claude-sonnet-4-5-20250929", "You are terse.", "Hello"
        )
        text = await client.generate(request)

        async with await client.generate_stream(request) as stream:
            async for token in stream:
                print(token, end="")
"""

import asyncio
import logging
import math
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

import httpx

from fullintel.core.llm_config import LLMConfig
from fullintel.core.llm_provider import (
    CircuitBreakerOpenError,
    ConversationRequest,
    MissingApiKeyError,
    NetworkError,
    NoContentError,
    ProviderError,
    RateLimitExceededError,
)
from fullintel.core.providers.base import ProviderAdapter, ProviderKind, detect_provider
from fullintel.core.providers.registry import create_adapters
from fullintel.core.providers.sse import SSEStreamParser
from fullintel.core.rate_limit import RateLimiter
from fullintel.core.resilience import CircuitBreaker

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


def _redacted_url(request: httpx.Request) -> str:
    """Request URL with the ``key`` query parameter masked."""
    url = request.url
    if "key" in url.params:
        url = url.copy_set_param("key", "***")
    return str(url)


class TokenStream:
    """Incrementally produced, non-restartable sequence of reply tokens.

    Iterating yields text fragments in arrival order. A transport failure in
    the middle of the body ends the iteration early instead of raising; the
    failure is kept in ``error``. Leaving the ``async with`` block (or
    calling ``aclose``) closes the HTTP body.

    Attributes:
        provider: Provider tag the tokens come from
        error: Mid-stream NetworkError that truncated the sequence, if any
    """

    def __init__(
        self,
        response: httpx.Response,
        parser: SSEStreamParser,
        *,
        provider: str,
    ):
        self.provider = provider
        self.error: Optional[NetworkError] = None
        self._response = response
        self._parser = parser
        self._chunks = response.aiter_bytes()
        self._pending: Deque[str] = deque()
        self._exhausted = False
        self.token_count = 0

    def __aiter__(self) -> "TokenStream":
        return self

    async def __anext__(self) -> str:
        while not self._pending:
            if self._exhausted:
                raise StopAsyncIteration
            await self._read_chunk()
        self.token_count += 1
        return self._pending.popleft()

    async def _read_chunk(self) -> None:
        if self._parser.finished:
            await self._finish()
            return
        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            self._pending.extend(self._parser.flush())
            await self._finish()
            return
        except httpx.RequestError as e:
            self.error = NetworkError(str(e) or type(e).__name__, provider=self.provider, cause=e)
            logger.warning(f"{self.provider} stream interrupted: {self.error}")
            await self._finish()
            return
        self._pending.extend(self._parser.feed(chunk))

    async def _finish(self) -> None:
        self._exhausted = True
        await self._response.aclose()

    async def aclose(self) -> None:
        """Stop the stream and release the connection."""
        self._pending.clear()
        if not self._exhausted:
            await self._finish()

    async def collect(self) -> str:
        """Drain the remaining tokens into one string."""
        return "".join([token async for token in self])

    async def __aenter__(self) -> "TokenStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class ResilientClient:
    """Rate-limited, circuit-protected client for all supported providers.

    Limiter and breaker state is per provider and lives as long as the
    client. Both guard their state with a lock, so one client may be shared
    by concurrently running workflows.

    Args:
        api_key: Opaque API key sent to whichever provider a model maps to
        config: Provider policies, timeouts and endpoint overrides
        http_client: Pre-built ``httpx.AsyncClient``; the caller keeps
            ownership. When omitted the client creates and closes its own.
        clock: Monotonic clock for limiters and breakers
        sleep: Awaitable used to wait out a rate limit

    Raises:
        MissingApiKeyError: If ``api_key`` is empty
        ValueError: If ``config`` fails validation
    """

    def __init__(
        self,
        api_key: str,
        *,
        config: Optional[LLMConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if not api_key:
            raise MissingApiKeyError()

        self.config = config or LLMConfig()
        self.config.validate()
        self._api_key = api_key
        self._sleep = sleep

        self._limiters: Dict[ProviderKind, RateLimiter] = {}
        self._breakers: Dict[ProviderKind, CircuitBreaker] = {}
        for kind in ProviderKind:
            policy = self.config.get_policy(kind)
            self._limiters[kind] = RateLimiter(
                name=kind.value, config=policy.rate_limit_config(), clock=clock
            )
            self._breakers[kind] = CircuitBreaker.from_policy(
                kind.value, policy.breaker_policy(), clock=clock
            )

        self._adapters: Dict[ProviderKind, ProviderAdapter] = create_adapters(
            self.config.base_urls(), max_tokens=self.config.max_tokens
        )

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self.config.timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "ResilientClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @staticmethod
    def detect_provider(model: str) -> ProviderKind:
        return detect_provider(model)

    def rate_limiter(self, provider: ProviderKind) -> RateLimiter:
        return self._limiters[provider]

    def circuit_breaker(self, provider: ProviderKind) -> CircuitBreaker:
        return self._breakers[provider]

    def adapter(self, provider: ProviderKind) -> ProviderAdapter:
        return self._adapters[provider]

    def get_status(self) -> Dict[str, Any]:
        """Per-provider limiter statistics and breaker status."""
        return {
            kind.value: {
                "rate_limiter": self._limiters[kind].get_stats(),
                "circuit_breaker": self._breakers[kind].get_status(),
            }
            for kind in ProviderKind
        }

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(self, request: ConversationRequest) -> str:
        """Whole-response generation.

        Raises:
            EmptyConversationError: If the request is empty
            UnsupportedModelError: If the model prefix is unknown
            RateLimitExceededError: If the limiter denies twice
            CircuitBreakerOpenError: If the provider circuit is open
            ProviderError: On a non-2xx response or a reply without text
            NetworkError: On a transport failure
        """
        request.validate()
        kind = detect_provider(request.model)
        await self._acquire(kind)
        breaker = self._check_circuit(kind)

        try:
            text = await self._send(kind, request)
        except Exception:
            breaker.record_failure()
            raise
        breaker.record_success()
        return text

    async def generate_stream(self, request: ConversationRequest) -> TokenStream:
        """Streaming generation.

        Returns once the upstream accepted the request. Establishment
        failures raise here, before any token is produced; the breaker
        records only that outcome.

        Raises:
            Same as ``generate``.
        """
        request.validate()
        kind = detect_provider(request.model)
        await self._acquire(kind)
        breaker = self._check_circuit(kind)
        adapter = self._adapters[kind]

        http_request = self._build_request(adapter, request, stream=True)
        logger.debug(f"Streaming {request.model} via {_redacted_url(http_request)}")
        try:
            response = await self._http.send(http_request, stream=True)
        except httpx.RequestError as e:
            breaker.record_failure()
            raise NetworkError(str(e) or type(e).__name__, provider=kind.value, cause=e) from e

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.RequestError:
                body = ""
            finally:
                await response.aclose()
            breaker.record_failure()
            raise adapter.error_for_status(response.status_code, body)

        breaker.record_success()
        return TokenStream(response, adapter.stream_parser(request), provider=kind.value)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _acquire(self, kind: ProviderKind) -> None:
        """Take a token, waiting out one denial; a second denial is final."""
        limiter = self._limiters[kind]
        result = limiter.acquire()
        if result.allowed:
            return

        if not math.isfinite(result.wait_seconds):
            raise RateLimitExceededError(kind.value)

        logger.warning(f"Rate limited by {kind.value}, waiting {result.wait_seconds:.2f}s")
        await self._sleep(result.wait_seconds)

        retry = limiter.acquire()
        if not retry.allowed:
            raise RateLimitExceededError(kind.value, retry_after=retry.wait_seconds)

    def _check_circuit(self, kind: ProviderKind) -> CircuitBreaker:
        breaker = self._breakers[kind]
        if not breaker.can_execute():
            retry_after = breaker.retry_after()
            logger.warning(f"Circuit open for {kind.value}, rejecting call")
            raise CircuitBreakerOpenError(kind.value, retry_after=retry_after)
        return breaker

    def _build_request(
        self, adapter: ProviderAdapter, request: ConversationRequest, *, stream: bool
    ) -> httpx.Request:
        return self._http.build_request(
            "POST",
            adapter.endpoint(request, self._api_key, stream=stream),
            params=adapter.params(self._api_key, stream=stream),
            headers=adapter.build_headers(request, self._api_key),
            json=adapter.build_body(request, stream=stream),
        )

    async def _send(self, kind: ProviderKind, request: ConversationRequest) -> str:
        adapter = self._adapters[kind]
        http_request = self._build_request(adapter, request, stream=False)
        logger.debug(f"Requesting {request.model} via {_redacted_url(http_request)}")

        try:
            response = await self._http.send(http_request)
        except httpx.RequestError as e:
            raise NetworkError(str(e) or type(e).__name__, provider=kind.value, cause=e) from e

        if not response.is_success:
            raise adapter.error_for_status(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{adapter.display_name} returned a non-JSON response",
                provider=kind.value,
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(data, dict):
            raise NoContentError(
                f"No content in {adapter.display_name} response",
                provider=kind.value,
                body=response.text,
            )
        return adapter.parse_response(request, data)
