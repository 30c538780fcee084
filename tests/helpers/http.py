"""Mock transports for exercising the resilient HTTP client."""

from __future__ import annotations

from collections.abc import Callable

import httpx

from ordersync.adapters.http_resilience import ResilientClient
from ordersync.config.http_resilience import ResilienceConfig

type Handler = Callable[[httpx.Request], httpx.Response]


class RecordingHandler:
    """Replay ``responses`` in order (repeating the last one) and keep every request."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        outcome = self.responses[index]
        if isinstance(outcome, Exception):
            raise outcome
        # fresh response per request so a replayed one is never already bound
        return httpx.Response(outcome.status_code, headers=outcome.headers, content=outcome.content)


def make_client_factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(resilience, transport=httpx.MockTransport(handler))

    return factory
