"""
Transport abstractions and the HTTP client for BLS servers.

Defines the Transport protocol used by the cache and fetcher, and BlsClient,
its requests-based implementation.
"""
