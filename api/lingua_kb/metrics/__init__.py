"""Centralized metrics module for Prometheus instrumentation.

Usage:
    from lingua_kb.metrics.translation_metrics import language_detection_total
    from lingua_kb.metrics.indexing_metrics import search_fallback_total
"""

from lingua_kb.metrics import indexing_metrics, translation_metrics

__all__ = [
    "indexing_metrics",
    "translation_metrics",
]
