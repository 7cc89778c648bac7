"""Prometheus scrape endpoint.

Prometheus calls this endpoint every N seconds to collect the current
metric values.  It returns plain text in the Prometheus exposition
format, NOT JSON:

  # HELP rpc_requests_total Total RPC requests
  # TYPE rpc_requests_total counter
  rpc_requests_total{method="Get"} 1432.0

Each reporter gets its own endpoint bound to its own registry, so the
global prometheus_client.REGISTRY is never exposed by accident.

SECURITY NOTE: metric data can reveal internal architecture, request
rates and error patterns.  Prefer a dedicated listenAddress on an
internal interface over mounting the handler on a public mux.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

ScrapeEndpoint = Callable[[], Awaitable[Response]]


def scrape_endpoint(registry: CollectorRegistry) -> ScrapeEndpoint:
    async def metrics() -> Response:
        """Expose the registry in text exposition format."""
        return Response(
            content=generate_latest(registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    return metrics
