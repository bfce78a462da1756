"""Sync core: ERP gateway, deduplication, commit, job cycle and scheduling."""
