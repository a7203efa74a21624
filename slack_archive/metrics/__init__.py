"""Metrics module for Prometheus monitoring."""

from .metrics import (
    API_CALLS,
    API_LATENCY,
    ENTITY_CACHE_HITS,
    ENTITY_CACHE_MISSES,
    OP_ITEMS,
    OP_LATENCY,
)

__all__ = [
    "API_CALLS",
    "API_LATENCY",
    "OP_ITEMS",
    "OP_LATENCY",
    "ENTITY_CACHE_HITS",
    "ENTITY_CACHE_MISSES",
]
