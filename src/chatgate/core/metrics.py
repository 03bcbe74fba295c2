"""Prometheus metrics for chatgate.

All metrics are module-level singletons registered on the default
``REGISTRY``.

Metrics defined here:

  chat_messages_ingested_total{platform}
      Counter - chat messages written to the store by ingestion tasks.

  chat_ingestion_errors_total{platform}
      Counter - events an ingestion task dropped because processing failed.

  chat_messages_published_total
      Counter - pending → published transitions (re-publishes excluded).

  chat_feed_dropped_total{feed}
      Counter - messages discarded from slow subscribers' backlogs.  This is
      the lag counter of the drop-oldest delivery policy.

  chat_active_listeners
      Gauge - ingestion tasks currently registered.

  chat_websocket_connections{feed}
      Gauge - open WebSocket connections per feed.

  http_requests_total{method, path, status}
      Counter - HTTP requests handled, labelled by route template.

  http_request_duration_seconds{method, path}
      Histogram - HTTP request latency in seconds.

Usage::

    from chatgate.core.metrics import messages_ingested_total
    messages_ingested_total.labels(platform="twitch").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

messages_ingested_total: Counter = Counter(
    "chat_messages_ingested_total",
    "Chat messages stored by ingestion tasks.",
    labelnames=["platform"],
)

ingestion_errors_total: Counter = Counter(
    "chat_ingestion_errors_total",
    "Chat events dropped because processing failed.",
    labelnames=["platform"],
)

active_listeners: Gauge = Gauge(
    "chat_active_listeners",
    "Ingestion tasks currently registered.",
)

# ---------------------------------------------------------------------------
# Moderation and delivery
# ---------------------------------------------------------------------------

messages_published_total: Counter = Counter(
    "chat_messages_published_total",
    "Messages moved from pending to published.",
)

feed_dropped_total: Counter = Counter(
    "chat_feed_dropped_total",
    "Messages discarded from slow subscribers' backlogs.",
    labelnames=["feed"],
)

websocket_connections: Gauge = Gauge(
    "chat_websocket_connections",
    "Open WebSocket connections per feed.",
    labelnames=["feed"],
)

# ---------------------------------------------------------------------------
# HTTP (populated by middleware in api/main.py)
# ---------------------------------------------------------------------------

http_requests_total: Counter = Counter(
    "http_requests_total",
    "HTTP requests handled by the FastAPI application.",
    labelnames=["method", "path", "status"],
)

http_request_duration_seconds: Histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


def get_metrics_response() -> tuple[bytes, str]:
    """Generate a Prometheus text-format metrics response.

    Returns:
        A tuple of (body_bytes, content_type_string) suitable for constructing
        a FastAPI ``Response`` object.
    """
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # noqa: PLC0415

    return generate_latest(), CONTENT_TYPE_LATEST
