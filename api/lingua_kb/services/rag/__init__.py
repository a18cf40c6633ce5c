"""Retrieval: vector index, reranking, fuzzy title search and the hybrid engine."""
