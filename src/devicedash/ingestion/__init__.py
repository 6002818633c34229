"""Ingestion layer.

This package turns raw request input (HTML forms, JSON bodies) into typed
partial device records before they reach the state/store layer.
"""

__all__: list[str] = []
