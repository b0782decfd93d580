"""
Session-aware HTTP client.

This package contains the request/response interceptor pipeline, single-flight
token refresh, the payload codec and the session token store.
"""
