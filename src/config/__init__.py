"""
Configuration loading and validation.

Provides typed settings objects for the cache (BLS_CACHE_DIR, USE_BLS_CACHE)
and the HTTP transport (user agent, headers, timeout), read from the
environment and an optional .env file.
"""
