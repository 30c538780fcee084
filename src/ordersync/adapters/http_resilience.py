"""Rate-limited httpx client with bounded retries."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from logging import WARNING, getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ordersync.config.http_resilience import (
    RateLimit,
    ResilienceConfig,
    ResponseHook,
    RetryPolicy,
)

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._client import UseClientDefault
    from httpx._types import (
        AuthTypes,
        HeaderTypes,
        QueryParamTypes,
        TimeoutTypes,
        URLTypes,
    )
    from tenacity import RetryCallState

log = getLogger(__name__)


class RetryableStatusError(httpx.HTTPStatusError):
    """Raised for responses whose status code is in the retry policy's forcelist."""


class RequestOptions(TypedDict, total=False):
    json: object
    params: QueryParamTypes | None
    headers: HeaderTypes | None
    auth: AuthTypes | UseClientDefault | None
    timeout: TimeoutTypes | UseClientDefault


class AsyncClientOptions(TypedDict, total=False):
    base_url: str
    timeout: TimeoutTypes
    headers: HeaderTypes
    event_hooks: dict[str, list[ResponseHook]]
    transport: httpx.AsyncBaseTransport


def retry_after_seconds(response: httpx.Response, *, now: datetime | None = None) -> float | None:
    """Return the delay requested by a ``Retry-After`` header, if any."""

    header = response.headers.get("Retry-After")
    if header is None:
        return None
    header = header.strip()
    try:
        return max(0.0, float(header))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    current = now or datetime.now(UTC)
    return max(0.0, (when - current).total_seconds())


def _build_wait(policy: RetryPolicy) -> Callable[[RetryCallState], float]:
    backoff = wait_exponential(multiplier=policy.backoff_factor, max=policy.max_backoff_wait)

    def wait(retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if policy.respect_retry_after_header and outcome is not None and outcome.failed:
            error = outcome.exception()
            if isinstance(error, RetryableStatusError):
                delay = retry_after_seconds(error.response)
                if delay is not None:
                    return min(delay, policy.max_backoff_wait)
        return backoff(retry_state)

    return wait


def _build_limiter(ratelimit: RateLimit | None) -> AsyncLimiter | None:
    if ratelimit is None:
        return None
    return AsyncLimiter(ratelimit.max_calls, ratelimit.per_seconds)


class ResilientClient:
    """Async HTTP client applying the retry and rate-limit settings of a ``ResilienceConfig``.

    Every attempt, including retries, passes through the rate limiter. Once the retry
    ceiling is hit the last error is re-raised unchanged.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter = _build_limiter(config.ratelimit)

        client_kwargs: AsyncClientOptions = {"timeout": config.timeout_seconds}
        if config.base_url is not None:
            client_kwargs["base_url"] = config.base_url
        if config.default_headers:
            client_kwargs["headers"] = dict(config.default_headers)
        if config.response_hooks:
            client_kwargs["event_hooks"] = {"response": list(config.response_hooks)}
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        async def do_request() -> httpx.Response:
            return await self._client.request(method, url, **kwargs)

        return await self._send(do_request)

    async def get(
        self,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def _send(self, func: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        policy = self.config.retry
        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.attempts),
            wait=_build_wait(policy),
            retry=retry_if_exception_type((RetryableStatusError, *policy.retry_on_exceptions)),
            before_sleep=before_sleep_log(log, WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._attempt(func)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _attempt(self, func: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        if self._limiter is None:
            response = await func()
        else:
            async with self._limiter:
                response = await func()
        if response.status_code in self.config.retry.status_forcelist:
            raise RetryableStatusError(
                f"{self.config.name}: retryable status {response.status_code}",
                request=response.request,
                response=response,
            )
        return response
