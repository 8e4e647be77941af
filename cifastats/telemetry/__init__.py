"""
Telemetry Module

Prometheus metrics for the request cache (hits, misses, dedup, errors,
evictions) and data quality (malformed dates, ranking fallbacks).
"""

from cifastats.telemetry.metrics import (
    cache_requests_total,
    cache_fetch_errors_total,
    cache_evictions_total,
    cache_entries,
    dq_malformed_dates_total,
    rankings_fallback_total,
    record_cache_request,
    record_cache_fetch_error,
    record_cache_eviction,
    set_cache_size,
    record_malformed_date,
    record_rankings_fallback,
    get_metrics_text,
)

__all__ = [
    "cache_requests_total",
    "cache_fetch_errors_total",
    "cache_evictions_total",
    "cache_entries",
    "dq_malformed_dates_total",
    "rankings_fallback_total",
    "record_cache_request",
    "record_cache_fetch_error",
    "record_cache_eviction",
    "set_cache_size",
    "record_malformed_date",
    "record_rankings_fallback",
    "get_metrics_text",
]
