"""
Multi-file download orchestration.

Runs batches of BLS files through the fetch/parse pipeline sequentially,
continuing past per-file failures and reporting them in diagnostics.
"""
