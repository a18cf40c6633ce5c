"""Multilingual FAQ knowledge base: translation, per-language indexing and hybrid retrieval."""
