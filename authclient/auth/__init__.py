"""
Authentication package for the HTTP client.

This package contains session-scoped token storage and the login/logout flow.
"""
