"""Hybrid memory: durable records plus a semantic vector index."""
