"""Batch image conversion and link maintenance for Markdown vaults."""
