"""
Retrieval, caching, defensive parsing, and diagnostics for BLS files.

Turns a BLS URL into a cleaned DataFrame plus a DiagnosticRecord describing
every repair, and bundles results into ResultEnvelopes.
"""
