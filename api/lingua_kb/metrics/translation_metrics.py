"""Prometheus metrics for language detection and the translation pipeline."""

from prometheus_client import Counter, Histogram

language_detection_total = Counter(
    "lingua_language_detection_total",
    "Total language detection outcomes by stage/result",
    ["stage", "result"],
)

language_detection_confidence = Histogram(
    "lingua_language_detection_confidence",
    "Probability reported by the local language classifier",
    buckets=(0.0, 0.3, 0.5, 0.7, 0.8, 0.9, 0.95, 1.0),
)

translation_requests_total = Counter(
    "lingua_translation_requests_total",
    "Translation provider requests by target language",
    ["target_lang"],
)

translation_characters_total = Counter(
    "lingua_translation_characters_total",
    "Characters submitted to the translation provider",
    ["target_lang"],
)

translation_cache_total = Counter(
    "lingua_translation_cache_total",
    "Translation chunk cache lookups by outcome",
    ["outcome"],
)

translation_operation_duration_seconds = Histogram(
    "lingua_translation_operation_duration_seconds",
    "Duration of entry translations",
    ["target_lang"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

translation_errors_total = Counter(
    "lingua_translation_errors_total",
    "Translation errors by target language",
    ["target_lang"],
)

glossary_pairs_skipped_total = Counter(
    "lingua_glossary_pairs_skipped_total",
    "Glossary pairs skipped during glossary maintenance",
    ["reason"],
)
