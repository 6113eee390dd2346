"""Retrieval: semantic search over indexed libraries."""
