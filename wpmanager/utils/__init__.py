"""Shared utilities (paths, redaction)."""
