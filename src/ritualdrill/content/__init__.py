"""Bundled catalog content (JSON)."""
