"""Prometheus metrics for indexing, retrieval and retries."""

from prometheus_client import Counter, Histogram

index_records_upserted_total = Counter(
    "lingua_index_records_upserted_total",
    "Index records upserted by namespace",
    ["namespace"],
)

index_deletes_total = Counter(
    "lingua_index_deletes_total",
    "Delete-by-entry operations by outcome",
    ["outcome"],
)

reindex_language_runs_total = Counter(
    "lingua_reindex_language_runs_total",
    "Per-language reindex runs by action/outcome",
    ["action", "outcome"],
)

reindex_confirmations_total = Counter(
    "lingua_reindex_confirmations_total",
    "Confirmation gate decisions",
    ["decision"],
)

search_requests_total = Counter(
    "lingua_search_requests_total",
    "Search requests by effective mode",
    ["mode"],
)

search_fallback_total = Counter(
    "lingua_search_fallback_total",
    "Vector searches that fell back to fuzzy search",
    ["reason"],
)

search_duration_seconds = Histogram(
    "lingua_search_duration_seconds",
    "Duration of search requests",
    ["mode"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)

upstream_retries_total = Counter(
    "lingua_upstream_retries_total",
    "Retries of upstream provider calls",
    ["label"],
)
