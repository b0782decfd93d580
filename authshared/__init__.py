"""
Shared building blocks for the session-aware HTTP client.

This package contains the data models, abstract interfaces, exception hierarchy
and logging configuration used by the client pipeline.
"""
