"""Prometheus metrics for monitoring archive synchronization and rendering."""

import prometheus_client as _prom

Counter = _prom.Counter
Histogram = _prom.Histogram


# Slack Web API metrics
API_LATENCY = Histogram(
    "slack_archive_api_latency_seconds",
    "Slack API latency in seconds by method and status",
    ["method", "status"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
API_CALLS = Counter(
    "slack_archive_api_calls_total",
    "Slack API call count by method and status",
    ["method", "status"],
)

# Operation metrics (sync and render stages)
OP_LATENCY = Histogram(
    "slack_archive_operation_latency_seconds",
    "Total latency of archive operations by operation",
    ["operation"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, float("inf")),
)
OP_ITEMS = Histogram(
    "slack_archive_operation_items",
    "Total number of items produced by archive operations",
    ["operation"],
    buckets=(0, 1, 5, 10, 20, 50, 100, 200, 500, 1000, 5000, float("inf")),
)

# Entity cache (users and bots)
ENTITY_CACHE_HITS = Counter(
    "slack_archive_entity_cache_hits_total",
    "Entity cache hits",
)
ENTITY_CACHE_MISSES = Counter(
    "slack_archive_entity_cache_misses_total",
    "Entity cache misses",
)
