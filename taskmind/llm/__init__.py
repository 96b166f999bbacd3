"""Adapters for the external generation and embedding services."""
