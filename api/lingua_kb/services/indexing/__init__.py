"""Entry lifecycle events and the per-language reindex orchestration."""
