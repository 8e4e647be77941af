"""
Prometheus metrics for the request cache and data quality.

Labels are restricted to LOW-CARDINALITY values only:
- cache:      cache instance name ("stats", "default", ...)
- outcome:    "hit", "miss", "dedup"
- reason:     "ttl", "size"
- statistic:  canonical ranking statistic name (max ~5)

Team ids, fixture ids, cache keys and raw dates must NEVER be used as
labels. Use logs for per-entity debugging.

All record_* helpers are best-effort: they never raise into the caller.
"""

import logging

from prometheus_client import (
    Counter,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

from cifastats.config import get_settings

logger = logging.getLogger(__name__)

# =============================================================================
# REQUEST CACHE METRICS
# =============================================================================

cache_requests_total = Counter(
    "cache_requests_total",
    "get_or_fetch calls by outcome",
    ["cache", "outcome"],
)

cache_fetch_errors_total = Counter(
    "cache_fetch_errors_total",
    "Underlying fetches that raised (not cached)",
    ["cache"],
)

cache_evictions_total = Counter(
    "cache_evictions_total",
    "Ready entries evicted by the TTL or size bound",
    ["cache", "reason"],
)

cache_entries = Gauge(
    "cache_entries",
    "Ready entries currently held",
    ["cache"],
)

# =============================================================================
# DATA QUALITY METRICS
# =============================================================================

dq_malformed_dates_total = Counter(
    "dq_malformed_dates_total",
    "Dates that could not be parsed and fell back to the current instant",
)

rankings_fallback_total = Counter(
    "rankings_fallback_total",
    "Ranking requests served from standings because no aggregates existed",
    ["statistic"],
)


def _enabled() -> bool:
    return get_settings().METRICS_ENABLED


def record_cache_request(cache: str, outcome: str) -> None:
    """Record a cache lookup outcome (hit, miss or dedup)."""
    if not _enabled():
        return
    try:
        cache_requests_total.labels(cache=cache, outcome=outcome).inc()
    except Exception as e:
        logger.warning(f"Failed to record cache request metric: {e}")


def record_cache_fetch_error(cache: str) -> None:
    if not _enabled():
        return
    try:
        cache_fetch_errors_total.labels(cache=cache).inc()
    except Exception as e:
        logger.warning(f"Failed to record cache fetch error metric: {e}")


def record_cache_eviction(cache: str, reason: str) -> None:
    if not _enabled():
        return
    try:
        cache_evictions_total.labels(cache=cache, reason=reason).inc()
    except Exception as e:
        logger.warning(f"Failed to record cache eviction metric: {e}")


def set_cache_size(cache: str, size: int) -> None:
    if not _enabled():
        return
    try:
        cache_entries.labels(cache=cache).set(size)
    except Exception as e:
        logger.warning(f"Failed to set cache size metric: {e}")


def record_malformed_date() -> None:
    if not _enabled():
        return
    try:
        dq_malformed_dates_total.inc()
    except Exception as e:
        logger.warning(f"Failed to record malformed date metric: {e}")


def record_rankings_fallback(statistic: str) -> None:
    if not _enabled():
        return
    try:
        rankings_fallback_total.labels(statistic=statistic).inc()
    except Exception as e:
        logger.warning(f"Failed to record rankings fallback metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
