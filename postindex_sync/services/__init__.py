"""Reconciliation engine and query-side record operations."""
